from scheduling.enums import SlotStatus
from scheduling.heatmap import COMMITMENT, PRESENCE, aggregate, peak_cells


def test_two_of_three_available(make_grid):
    grids = [
        make_grid({(1, 18): SlotStatus.AVAILABLE}, owner_id=1),
        make_grid({(1, 18): SlotStatus.AVAILABLE}, owner_id=2),
        make_grid({}, owner_id=3),
    ]
    [cell] = aggregate(grids, days=[1], hours=[18])
    assert (cell.day_of_week, cell.hour, cell.available_count, cell.total_count) == (1, 18, 2, 3)
    assert cell.intensity == 2 / 3


def test_freed_counts_as_available_committed_does_not(make_grid):
    grids = [make_grid({(0, 0): SlotStatus.FREED}), make_grid({(0, 0): SlotStatus.COMMITTED})]
    [cell] = aggregate(grids, days=[0], hours=[0])
    assert cell.available_count == 1


def test_measure_is_parameterizable(make_grid):
    grids = [
        make_grid({(0, 0): SlotStatus.BLOCKED}),
        make_grid({(0, 0): SlotStatus.COMMITTED}),
        make_grid({}),
    ]
    [presence] = aggregate(grids, days=[0], hours=[0], counted=PRESENCE)
    [commitment] = aggregate(grids, days=[0], hours=[0], counted=COMMITMENT)
    assert presence.available_count == 2
    assert commitment.available_count == 1


def test_no_grids_means_no_data():
    cells = aggregate([])
    assert len(cells) == 7 * 24
    assert all(not c.has_data and c.intensity is None for c in cells)


def test_counts_never_exceed_total(make_grid):
    grids = [make_grid({(d, h): SlotStatus.AVAILABLE for d in range(7) for h in range(0, 24, owner)}, owner)
             for owner in (1, 2, 5)]
    for cell in aggregate(grids):
        assert 0 <= cell.available_count <= cell.total_count == 3


def test_peak_cells_ranked_by_count_then_time(make_grid):
    grids = [
        make_grid({(2, 20): SlotStatus.AVAILABLE, (0, 9): SlotStatus.AVAILABLE}),
        make_grid({(2, 20): SlotStatus.AVAILABLE, (1, 9): SlotStatus.AVAILABLE}),
    ]
    peaks = peak_cells(aggregate(grids), limit=2)
    assert [(c.day_of_week, c.hour, c.available_count) for c in peaks] == [(2, 20, 2), (0, 9, 1)]
