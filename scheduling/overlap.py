"""
Пересечение событий с сеткой доступности.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Iterator

from .enums import SlotStatus
from .slot_grid import CellKey, DAYS_IN_WEEK, SlotGrid

SlotPredicate = Callable[[SlotStatus | None], bool]


@dataclass(frozen=True)
class EventBlock:
    event_id: int
    day_of_week: int
    start_hour: float
    end_hour: float
    metadata: dict = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        if not 0 <= self.day_of_week < DAYS_IN_WEEK:
            raise ValueError(f"day_of_week must be within 0..6, got {self.day_of_week}")
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(
                f"EventBlock requires 0 <= start_hour < end_hour <= 24, "
                f"got {self.start_hour}..{self.end_hour}"
            )


def is_available(status: SlotStatus | None) -> bool:
    return status is SlotStatus.AVAILABLE


def covered_hours(block: EventBlock) -> Iterator[int]:
    """Целые часы [ceil(start), end), которые покрывает блок."""
    cursor = math.ceil(block.start_hour)
    while cursor < block.end_hour:
        yield cursor
        cursor += 1


def overlaps(
    event: EventBlock,
    slots: SlotGrid,
    day_origin_offset: int = 0,
    predicate: SlotPredicate = is_available,
) -> bool:
    """
    Есть ли среди часов события хотя бы одна ячейка, удовлетворяющая predicate.

    day_origin_offset переводит номер дня события в нумерацию сетки:
    day = (event.day_of_week + day_origin_offset) % 7.
    """
    day = (event.day_of_week + day_origin_offset) % DAYS_IN_WEEK
    for hour in covered_hours(event):
        if predicate(slots.get(day, hour)):
            return True
    return False


def partition_by_availability(
    events: Iterable[EventBlock],
    slots: SlotGrid,
    day_origin_offset: int = 0,
    predicate: SlotPredicate = is_available,
) -> tuple[list[EventBlock], list[EventBlock]]:
    """Делит события на подходящие под доступность и остальные, сохраняя порядок."""
    matching, other = [], []
    for event in events:
        if overlaps(event, slots, day_origin_offset, predicate):
            matching.append(event)
        else:
            other.append(event)
    return matching, other


def sort_by_availability(
    events: Iterable[EventBlock],
    slots: SlotGrid,
    day_origin_offset: int = 0,
) -> list[EventBlock]:
    matching, other = partition_by_availability(events, slots, day_origin_offset)
    return matching + other


def split_into_blocks(
    event_id: int,
    start: datetime,
    end: datetime,
    week_start: datetime,
    metadata: dict | None = None,
) -> list[EventBlock]:
    """
    Режет абсолютный интервал события на блоки по дням недели, начинающейся
    в week_start. Части вне недели отбрасываются. Все datetime должны быть
    в одном часовом поясе (часовом поясе отображения).
    """
    week_end = week_start + timedelta(days=DAYS_IN_WEEK)
    start = max(start, week_start)
    end = min(end, week_end)
    blocks = []
    day_start = week_start
    for day in range(DAYS_IN_WEEK):
        day_end = day_start + timedelta(days=1)
        lo, hi = max(start, day_start), min(end, day_end)
        if lo < hi:
            blocks.append(EventBlock(
                event_id=event_id,
                day_of_week=day,
                start_hour=(lo - day_start).total_seconds() / 3600,
                end_hour=(hi - day_start).total_seconds() / 3600,
                metadata=dict(metadata or {}),
            ))
        day_start = day_end
    return blocks


def committed_cells(blocks: Iterable[EventBlock]) -> set[CellKey]:
    """Все ячейки (day, hour), которые занимают события."""
    cells = set()
    for block in blocks:
        for hour in covered_hours(block):
            cells.add((block.day_of_week, hour))
    return cells
