from .enums import RosterKind, RosterRole, SlotStatus
from .errors import (
    AlreadyJoinedError,
    AssignmentNotFoundError,
    AvailabilitySaveError,
    ConflictError,
    EventNotFoundError,
    LockedError,
    PositionConflictError,
    RosterFullError,
    SchedulingError,
    SignupNotFoundError,
)
from .heatmap import HeatmapCell, aggregate
from .overlap import EventBlock, overlaps, partition_by_availability
from .paint import CellEdit, DragMode, PaintInteractionController
from .rolling_week import RollingWeekProjector
from .roster import (
    RosterAssignment,
    RosterAssignmentEngine,
    RosterSnapshot,
    filled_count,
    find_next_available_position,
    is_full,
)
from .slot_grid import SlotGrid, TimeSlot, compose_week
