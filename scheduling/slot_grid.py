"""
Недельная сетка доступности.

Ключ ячейки: пара (day_of_week, hour), 0 = понедельник. На один ключ
приходится не больше одного слота. Статусы Committed/Blocked выставляет только
подсистема записи на события (commit/block/free), авторский интерфейс
(upsert/remove) работает лишь со статусами Available/Freed.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator

from .enums import EDITABLE_STATUSES, SlotStatus, is_locked
from .errors import LockedError

DAYS_IN_WEEK = 7
HOURS_IN_DAY = 24

CellKey = tuple[int, int]

# Статусы разовых правок на конкретную дату
OVERRIDE_STATUSES = frozenset({SlotStatus.AVAILABLE, SlotStatus.BLOCKED})


@dataclass(frozen=True)
class TimeSlot:
    day_of_week: int
    hour: int
    status: SlotStatus

    @property
    def key(self) -> CellKey:
        return (self.day_of_week, self.hour)


def check_cell(day: int, hour: int) -> None:
    if not 0 <= day < DAYS_IN_WEEK:
        raise ValueError(f"day_of_week must be within 0..6, got {day}")
    if not 0 <= hour < HOURS_IN_DAY:
        raise ValueError(f"hour must be within 0..23, got {hour}")


class SlotGrid:
    def __init__(self, owner_id, slots: Iterable[TimeSlot] = ()):
        self.owner_id = owner_id
        self._cells: dict[CellKey, SlotStatus] = {}
        for slot in slots:
            check_cell(slot.day_of_week, slot.hour)
            self._cells[slot.key] = SlotStatus(slot.status)

    @classmethod
    def from_mapping(cls, owner_id, cells: dict[CellKey, SlotStatus]) -> "SlotGrid":
        return cls(owner_id, (TimeSlot(d, h, s) for (d, h), s in cells.items()))

    def get(self, day: int, hour: int) -> SlotStatus | None:
        return self._cells.get((day, hour))

    def upsert(self, day: int, hour: int, status: SlotStatus) -> None:
        check_cell(day, hour)
        status = SlotStatus(status)
        current = self._cells.get((day, hour))
        if status not in EDITABLE_STATUSES:
            raise LockedError(day, hour, status)
        if is_locked(current):
            raise LockedError(day, hour, current)
        self._cells[(day, hour)] = status

    def remove(self, day: int, hour: int) -> None:
        check_cell(day, hour)
        current = self._cells.get((day, hour))
        if current is None:
            return
        if is_locked(current):
            raise LockedError(day, hour, current)
        del self._cells[(day, hour)]

    # --- Операции подсистемы записи на события ---

    def commit(self, day: int, hour: int) -> None:
        check_cell(day, hour)
        self._cells[(day, hour)] = SlotStatus.COMMITTED

    def block(self, day: int, hour: int) -> None:
        check_cell(day, hour)
        self._cells[(day, hour)] = SlotStatus.BLOCKED

    def free(self, day: int, hour: int) -> None:
        """Возвращает слот из Committed обратно в доступность."""
        check_cell(day, hour)
        if self._cells.get((day, hour)) is SlotStatus.COMMITTED:
            self._cells[(day, hour)] = SlotStatus.FREED

    # --- Чтение ---

    def keys(self) -> set[CellKey]:
        return set(self._cells)

    def slots(self) -> list[TimeSlot]:
        return [TimeSlot(d, h, s) for (d, h), s in sorted(self._cells.items())]

    def cells_with(self, *statuses: SlotStatus) -> set[CellKey]:
        wanted = set(statuses)
        return {key for key, status in self._cells.items() if status in wanted}

    def copy(self) -> "SlotGrid":
        clone = SlotGrid(self.owner_id)
        clone._cells = dict(self._cells)
        return clone

    def __contains__(self, key: CellKey) -> bool:
        return key in self._cells

    def __iter__(self) -> Iterator[TimeSlot]:
        return iter(self.slots())

    def __len__(self) -> int:
        return len(self._cells)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SlotGrid):
            return NotImplemented
        return self.owner_id == other.owner_id and self._cells == other._cells

    def __repr__(self) -> str:
        return f"SlotGrid(owner_id={self.owner_id!r}, cells={len(self._cells)})"


def compose_week(
    owner_id,
    template: Iterable[TimeSlot],
    committed: Iterable[CellKey] = (),
    blocked_days: Iterable[int] = (),
    overrides: dict[CellKey, SlotStatus] | None = None,
) -> SlotGrid:
    """
    Собирает сетку недели из сохранённого шаблона, занятых событиями ячеек,
    разовых правок на конкретные даты и дней отсутствия.

    Приоритет: отсутствие > разовая правка > шаблон > событие.
    Правка Available на занятой событием ячейке дает Freed, правка Blocked
    закрывает час. В день отсутствия блокируются все ячейки, кроме событий
    вне шаблона.
    """
    grid = SlotGrid(owner_id, template)
    template_keys = grid.keys()

    for day, hour in committed:
        if grid.get(day, hour) is not SlotStatus.BLOCKED:
            grid.commit(day, hour)

    for (day, hour), status in (overrides or {}).items():
        status = SlotStatus(status)
        if status not in OVERRIDE_STATUSES:
            raise ValueError(f"Unsupported override status: {status.value}")
        current = grid.get(day, hour)
        if status is SlotStatus.BLOCKED:
            grid.block(day, hour)
        elif current is SlotStatus.COMMITTED:
            grid.free(day, hour)
        elif current is None:
            grid.upsert(day, hour, SlotStatus.AVAILABLE)

    blocked = set(blocked_days)
    for day, hour in grid.keys():
        if day not in blocked:
            continue
        if (day, hour) in template_keys or grid.get(day, hour) is not SlotStatus.COMMITTED:
            grid.block(day, hour)

    return grid
