"""
Скользящая неделя: столбец "сегодня" делится на прошедшую и будущую части,
а прошедшие ячейки показывают данные следующей недели без повторного запроса.
"""
import math
from datetime import datetime, timedelta
from typing import Iterable

from .enums import SlotStatus
from .slot_grid import CellKey, DAYS_IN_WEEK, SlotGrid


class RollingWeekProjector:
    def __init__(
        self,
        today_index: int,
        current_hour: float,
        next_period: SlotGrid | None = None,
        dirty: Iterable[CellKey] | None = None,
    ):
        if not 0 <= today_index < DAYS_IN_WEEK:
            raise ValueError(f"today_index must be within 0..6, got {today_index}")
        if not 0 <= current_hour < 24:
            raise ValueError(f"current_hour must be within [0, 24), got {current_hour}")
        self.today_index = today_index
        self.current_hour = current_hour
        self.next_period = next_period
        # Множество разделяется с контроллером рисования, не копируем
        self.dirty: set[CellKey] = dirty if isinstance(dirty, set) else set(dirty or ())

    @classmethod
    def from_datetime(
        cls,
        now: datetime,
        week_starts_on: int = 0,
        next_period: SlotGrid | None = None,
        dirty: Iterable[CellKey] | None = None,
    ) -> "RollingWeekProjector":
        """
        Строит проектор из момента времени в часовом поясе пользователя.
        week_starts_on: номер дня по datetime.weekday(), с которого начинается неделя.
        """
        today_index = (now.weekday() - week_starts_on) % DAYS_IN_WEEK
        current_hour = now.hour + now.minute / 60 + now.second / 3600
        return cls(today_index, current_hour, next_period=next_period, dirty=dirty)

    @property
    def is_rolling(self) -> bool:
        return self.next_period is not None

    def is_past(self, day: int, hour: int) -> bool:
        if day < self.today_index:
            return True
        return day == self.today_index and hour < math.floor(self.current_hour)

    def status_at(self, grid: SlotGrid, day: int, hour: int) -> SlotStatus | None:
        if self.next_period is not None and self.is_past(day, hour):
            if (day, hour) in self.dirty:
                return grid.get(day, hour)
            return self.next_period.get(day, hour)
        return grid.get(day, hour)

    def mark_dirty(self, day: int, hour: int) -> None:
        self.dirty.add((day, hour))

    def project(self, grid: SlotGrid) -> SlotGrid:
        """Итоговая сетка в том виде, в каком её нужно показать."""
        keys = set(grid.keys())
        if self.next_period is not None:
            keys |= self.next_period.keys()
        cells = {}
        for day, hour in keys:
            status = self.status_at(grid, day, hour)
            if status is not None:
                cells[(day, hour)] = status
        return SlotGrid.from_mapping(grid.owner_id, cells)

    def project_events(self, current: Iterable, next_period: Iterable | None = None) -> list:
        """
        Объединяет события текущей и следующей недели для отображения.

        События прошедших дней и уже закончившиеся сегодня заменяются
        событиями следующей недели на те же дни.
        """
        current = list(current)
        if next_period is None:
            return current

        now_hour = math.floor(self.current_hour)

        def elapsed(block) -> bool:
            if block.day_of_week < self.today_index:
                return True
            return block.day_of_week == self.today_index and block.end_hour <= now_hour

        result = [block for block in current if not elapsed(block)]
        result.extend(block for block in next_period if elapsed(block))
        return result


def week_start_for(now: datetime, week_starts_on: int = 0) -> datetime:
    """Полночь первого дня недели, в которую попадает now (в том же часовом поясе)."""
    days_back = (now.weekday() - week_starts_on) % DAYS_IN_WEEK
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days_back)
