import pytest

from scheduling.enums import RosterKind, RosterRole
from scheduling.errors import (
    AlreadyJoinedError,
    AssignmentNotFoundError,
    PositionConflictError,
    RosterFullError,
    SignupNotFoundError,
)
from scheduling.roster import (
    RosterAssignment,
    RosterAssignmentEngine,
    RosterSnapshot,
    filled_count,
    find_next_available_position,
    is_full,
)

TANK, HEALER, FLEX = RosterRole.TANK, RosterRole.HEALER, RosterRole.FLEX
PLAYER, BENCH = RosterRole.PLAYER, RosterRole.BENCH


def assignment(role, position, user_id=None, signup_id=None):
    return RosterAssignment(signup_id or position, user_id or position, role, position)


class FakeRosterStore:
    """Хранилище в памяти с теми же гарантиями уникальности, что и БД."""

    def __init__(self, kind: RosterKind, capacities: dict, assignments=()):
        self.kind = kind
        self.capacities = dict(capacities)
        self.assignments: list[RosterAssignment] = list(assignments)
        self.next_id = max((a.signup_id for a in self.assignments), default=0) + 1
        self.fetches = 0
        self.join_calls = []

    async def fetch_roster(self, event_id):
        self.fetches += 1
        return RosterSnapshot(event_id, self.kind, dict(self.capacities), list(self.assignments))

    def _taken(self, role, position, except_id=None):
        return any(a.role == role and a.position == position and a.signup_id != except_id
                   for a in self.assignments)

    async def join_roster(self, event_id, user_id, role, position):
        self.join_calls.append((role, position))
        if not 1 <= position <= self.capacities.get(role, 0):
            raise RosterFullError(event_id, role)
        if any(a.user_id == user_id for a in self.assignments):
            raise AlreadyJoinedError(event_id, user_id)
        if self._taken(role, position):
            raise PositionConflictError(event_id, role, position)
        new = RosterAssignment(self.next_id, user_id, role, position)
        self.next_id += 1
        self.assignments.append(new)
        return new

    async def leave_roster(self, event_id, user_id):
        for a in self.assignments:
            if a.user_id == user_id:
                self.assignments.remove(a)
                return a
        raise AssignmentNotFoundError(event_id, user_id)

    async def move_assignment(self, event_id, signup_id, role, position):
        if self._taken(role, position, except_id=signup_id):
            raise PositionConflictError(event_id, role, position)
        for i, a in enumerate(self.assignments):
            if a.signup_id == signup_id:
                self.assignments[i] = RosterAssignment(signup_id, a.user_id, role, position)
                return self.assignments[i]
        raise SignupNotFoundError(event_id, signup_id)


class RacingRosterStore(FakeRosterStore):
    """Перед каждой из первых `races` записей другой клиент занимает ту же позицию."""

    def __init__(self, *args, races: int, **kwargs):
        super().__init__(*args, **kwargs)
        self.races = races
        self.rival_id = 1000

    async def join_roster(self, event_id, user_id, role, position):
        if self.races > 0:
            self.races -= 1
            self.rival_id += 1
            await super().join_roster(event_id, self.rival_id, role, position)
        return await super().join_roster(event_id, user_id, role, position)


# --- Чистые функции ---

def test_second_tank_position():
    assert find_next_available_position(TANK, [assignment(TANK, 1)], 2) == 2


def test_full_role_returns_none():
    assert find_next_available_position(TANK, [assignment(TANK, 1), assignment(TANK, 2, 2)], 2) is None


def test_lowest_free_position_first():
    taken = [assignment(TANK, 1), assignment(TANK, 3, 3)]
    assert find_next_available_position(TANK, taken, 4) == 2


def test_other_roles_do_not_occupy_positions():
    assert find_next_available_position(TANK, [assignment(HEALER, 1)], 1) == 1


@pytest.mark.parametrize("capacity", range(0, 5))
def test_position_is_free_and_in_range(capacity):
    for filled in range(capacity + 1):
        taken = [assignment(TANK, p, p) for p in range(1, filled + 1)]
        position = find_next_available_position(TANK, taken, capacity)
        if filled == capacity:
            assert position is None
        else:
            assert 1 <= position <= capacity
            assert position not in {a.position for a in taken}


def test_filled_count_and_is_full():
    taken = [assignment(TANK, 1), assignment(HEALER, 1, 2)]
    assert filled_count(TANK, taken) == 1
    assert is_full(HEALER, taken, {TANK: 2, HEALER: 1})
    assert not is_full(TANK, taken, {TANK: 2, HEALER: 1})
    # Роль без вместимости всегда заполнена
    assert is_full(FLEX, taken, {TANK: 2})


def test_snapshot_helpers():
    snapshot = RosterSnapshot(1, RosterKind.ROLE_BASED, {FLEX: 2, TANK: 2},
                              [assignment(TANK, 2, 5), assignment(TANK, 1, 6)])
    assert snapshot.roles() == [TANK, FLEX]
    assert [a.position for a in snapshot.by_role(TANK)] == [1, 2]
    assert snapshot.assignment_of(6).position == 1
    assert snapshot.assignment_of(7) is None
    assert snapshot.is_full(TANK)


# --- Запись и выход ---

async def test_join_preferred_role():
    store = FakeRosterStore(RosterKind.ROLE_BASED, {TANK: 2, FLEX: 1}, [assignment(TANK, 1)])
    joined = await RosterAssignmentEngine(store).join(1, 42, TANK)
    assert (joined.role, joined.position, joined.user_id) == (TANK, 2, 42)


async def test_join_full_role_raises():
    store = FakeRosterStore(RosterKind.ROLE_BASED, {TANK: 1}, [assignment(TANK, 1)])
    with pytest.raises(RosterFullError):
        await RosterAssignmentEngine(store).join(1, 42, TANK)
    assert store.join_calls == []


async def test_full_role_does_not_spill_into_flex():
    store = FakeRosterStore(RosterKind.ROLE_BASED, {TANK: 1, FLEX: 2}, [assignment(TANK, 1)])
    with pytest.raises(RosterFullError):
        await RosterAssignmentEngine(store).join(1, 99, TANK)
    assert store.join_calls == []
    assert store.assignments == [assignment(TANK, 1)]


async def test_role_based_join_requires_role():
    store = FakeRosterStore(RosterKind.ROLE_BASED, {TANK: 1, FLEX: 2})
    with pytest.raises(ValueError):
        await RosterAssignmentEngine(store).join(1, 99)
    with pytest.raises(ValueError):
        await RosterAssignmentEngine(store).join(1, 99, HEALER)
    assert store.join_calls == []


async def test_generic_join_prefers_players_then_bench():
    store = FakeRosterStore(RosterKind.GENERIC, {PLAYER: 1, BENCH: 2}, [assignment(PLAYER, 1)])
    engine = RosterAssignmentEngine(store)
    joined = await engine.join(1, 42)
    assert (joined.role, joined.position) == (BENCH, 1)


async def test_generic_join_can_pick_bench_directly():
    store = FakeRosterStore(RosterKind.GENERIC, {PLAYER: 10, BENCH: 5})
    joined = await RosterAssignmentEngine(store).join(1, 42, BENCH)
    assert joined.role is BENCH


async def test_join_twice_is_rejected():
    store = FakeRosterStore(RosterKind.GENERIC, {PLAYER: 10, BENCH: 5})
    engine = RosterAssignmentEngine(store)
    await engine.join(1, 42)
    with pytest.raises(AlreadyJoinedError):
        await engine.join(1, 42)
    assert len(store.assignments) == 1


async def test_conflict_refetches_and_retries():
    store = RacingRosterStore(RosterKind.ROLE_BASED, {TANK: 3}, races=1)
    joined = await RosterAssignmentEngine(store).join(1, 42, TANK)

    assert joined.position == 2
    assert store.join_calls[-1] == (TANK, 2)
    assert store.fetches == 2
    positions = sorted(a.position for a in store.assignments)
    assert positions == [1, 2]


async def test_conflict_retries_are_bounded():
    store = RacingRosterStore(RosterKind.ROLE_BASED, {TANK: 10}, races=10)
    with pytest.raises(RosterFullError):
        await RosterAssignmentEngine(store, max_attempts=3).join(1, 42, TANK)
    # Начальное чтение плюс перечитывание после каждого конфликта
    assert store.fetches == 4
    assert all(a.user_id != 42 for a in store.assignments)


async def test_conflict_until_full_surfaces_full_error():
    store = RacingRosterStore(RosterKind.ROLE_BASED, {TANK: 1}, races=1)
    with pytest.raises(RosterFullError):
        await RosterAssignmentEngine(store).join(1, 42, TANK)


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RosterAssignmentEngine(FakeRosterStore(RosterKind.GENERIC, {}), max_attempts=0)


async def test_leave_removes_assignment():
    store = FakeRosterStore(RosterKind.ROLE_BASED, {TANK: 2}, [assignment(TANK, 1, 42)])
    removed = await RosterAssignmentEngine(store).leave(1, 42)
    assert removed.user_id == 42
    assert store.assignments == []


async def test_leave_without_assignment_raises():
    store = FakeRosterStore(RosterKind.ROLE_BASED, {TANK: 2})
    with pytest.raises(AssignmentNotFoundError):
        await RosterAssignmentEngine(store).leave(1, 42)


async def test_leaving_player_promotes_longest_waiting_bench():
    store = FakeRosterStore(RosterKind.GENERIC, {PLAYER: 1, BENCH: 3}, [
        RosterAssignment(1, 10, PLAYER, 1),
        RosterAssignment(5, 20, BENCH, 1),
        RosterAssignment(3, 30, BENCH, 2),
    ])
    await RosterAssignmentEngine(store).leave(1, 10)

    promoted = [a for a in store.assignments if a.role is PLAYER]
    assert [(a.user_id, a.position) for a in promoted] == [(30, 1)]
    assert [a.user_id for a in store.assignments if a.role is BENCH] == [20]


async def test_leaving_bench_does_not_promote():
    store = FakeRosterStore(RosterKind.GENERIC, {PLAYER: 1, BENCH: 2}, [
        RosterAssignment(1, 20, BENCH, 1),
        RosterAssignment(2, 30, BENCH, 2),
    ])
    await RosterAssignmentEngine(store).leave(1, 30)
    assert [(a.user_id, a.role) for a in store.assignments] == [(20, BENCH)]


async def test_promotion_skips_bench_signup_that_vanished():
    class VanishingBenchStore(FakeRosterStore):
        async def move_assignment(self, event_id, signup_id, role, position):
            self.assignments = [a for a in self.assignments if a.signup_id != signup_id]
            return await super().move_assignment(event_id, signup_id, role, position)

    store = VanishingBenchStore(RosterKind.GENERIC, {PLAYER: 1, BENCH: 1}, [
        RosterAssignment(1, 10, PLAYER, 1),
        RosterAssignment(2, 20, BENCH, 1),
    ])
    removed = await RosterAssignmentEngine(store).leave(1, 10)
    assert removed.user_id == 10
    assert store.assignments == []
