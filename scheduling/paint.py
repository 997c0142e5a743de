"""
Конечный автомат "рисования" доступности протягиванием указателя.

idle --pointer_down--> dragging(mode) --pointer_up/pointer_leave/cancel--> idle

Режим выбирается по ячейке, с которой начато протягивание: если она Available,
стираем, иначе рисуем. Заблокированные ячейки (Committed/Blocked) никогда не
изменяются и не могут начать протягивание.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .enums import SlotStatus, is_locked
from .rolling_week import RollingWeekProjector
from .slot_grid import CellKey, SlotGrid, check_cell

logger = logging.getLogger(__name__)


class DragMode(str, Enum):
    PAINT = "paint"
    ERASE = "erase"


@dataclass(frozen=True)
class CellEdit:
    day_of_week: int
    hour: int
    before: SlotStatus | None
    after: SlotStatus | None

    @property
    def key(self) -> CellKey:
        return (self.day_of_week, self.hour)


class PaintInteractionController:
    def __init__(
        self,
        grid: SlotGrid,
        projector: RollingWeekProjector | None = None,
        on_edit: Callable[[CellEdit], None] | None = None,
    ):
        self.grid = grid
        self.projector = projector
        self.on_edit = on_edit
        self.mode: DragMode | None = None
        # Изменения текущего (или последнего) жеста в порядке прохода
        self.gesture_edits: list[CellEdit] = []
        # При наличии проектора грязные ячейки общие с ним
        self.dirty: set[CellKey] = projector.dirty if projector is not None else set()

    @property
    def is_dragging(self) -> bool:
        return self.mode is not None

    @property
    def state(self) -> str:
        return f"dragging({self.mode.value})" if self.mode else "idle"

    def is_cell_locked(self, day: int, hour: int) -> bool:
        if is_locked(self.grid.get(day, hour)):
            return True
        if self.projector is not None:
            return is_locked(self.projector.status_at(self.grid, day, hour))
        return False

    def pointer_down(self, day: int, hour: int) -> bool:
        """Начинает протягивание. Возвращает False, если ячейка заблокирована."""
        check_cell(day, hour)
        if self.is_cell_locked(day, hour):
            logger.debug("Drag refused on locked cell (%s, %s)", day, hour)
            return False
        current = self.grid.get(day, hour)
        self.mode = DragMode.ERASE if current is SlotStatus.AVAILABLE else DragMode.PAINT
        self.gesture_edits = []
        self._apply(day, hour)
        return True

    def pointer_enter(self, day: int, hour: int) -> None:
        if self.mode is None:
            return
        check_cell(day, hour)
        self._apply(day, hour)

    def pointer_up(self) -> None:
        self.mode = None

    def pointer_leave(self) -> None:
        self.mode = None

    def cancel(self) -> None:
        """Прерывает протягивание без отката уже внесённых изменений."""
        if self.mode is not None:
            logger.debug("Drag in mode %s abandoned", self.mode.value)
        self.mode = None

    def drag(self, cells: list[CellKey]) -> list[CellEdit]:
        """Полный жест: нажатие на первой ячейке, проход по остальным, отпускание."""
        if not cells or not self.pointer_down(*cells[0]):
            return []
        try:
            for day, hour in cells[1:]:
                self.pointer_enter(day, hour)
        finally:
            self.pointer_up()
        return list(self.gesture_edits)

    def _apply(self, day: int, hour: int) -> None:
        if self.is_cell_locked(day, hour):
            return
        self.dirty.add((day, hour))

        before = self.grid.get(day, hour)
        if self.mode is DragMode.PAINT and before is None:
            self.grid.upsert(day, hour, SlotStatus.AVAILABLE)
        elif self.mode is DragMode.ERASE and before is SlotStatus.AVAILABLE:
            self.grid.remove(day, hour)
        else:
            return

        edit = CellEdit(day, hour, before, self.grid.get(day, hour))
        self.gesture_edits.append(edit)
        if self.on_edit is not None:
            self.on_edit(edit)
