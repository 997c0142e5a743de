"""
Тепловая карта доступности группы.
"""
from dataclasses import dataclass
from typing import Iterable, Sequence

from .enums import SlotStatus
from .slot_grid import DAYS_IN_WEEK, HOURS_IN_DAY, SlotGrid

# Что считать "доступным" при подсчёте
AVAILABILITY = frozenset({SlotStatus.AVAILABLE, SlotStatus.FREED})
PRESENCE = frozenset(SlotStatus)
COMMITMENT = frozenset({SlotStatus.COMMITTED})


@dataclass(frozen=True)
class HeatmapCell:
    day_of_week: int
    hour: int
    available_count: int
    total_count: int

    @property
    def has_data(self) -> bool:
        return self.total_count > 0

    @property
    def intensity(self) -> float | None:
        """Доля доступных; None, если данных нет."""
        if self.total_count == 0:
            return None
        return self.available_count / self.total_count


def aggregate(
    grids: Sequence[SlotGrid],
    days: Iterable[int] = range(DAYS_IN_WEEK),
    hours: Iterable[int] = range(HOURS_IN_DAY),
    counted: frozenset = AVAILABILITY,
) -> list[HeatmapCell]:
    total = len(grids)
    hours = list(hours)
    cells = []
    for day in days:
        for hour in hours:
            available = sum(1 for grid in grids if grid.get(day, hour) in counted)
            cells.append(HeatmapCell(day, hour, available, total))
    return cells


def peak_cells(cells: Iterable[HeatmapCell], limit: int = 3) -> list[HeatmapCell]:
    """Самые посещаемые часы: по убыванию числа доступных, затем по времени."""
    ranked = [c for c in cells if c.available_count > 0]
    ranked.sort(key=lambda c: (-c.available_count, c.day_of_week, c.hour))
    return ranked[:limit]
