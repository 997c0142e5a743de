"""
Реализации внешних интерфейсов ядра расписания поверх БД.

Каждый вызов открывает собственную сессию, как это делают коги.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scheduling.enums import RosterKind, RosterRole, SlotStatus
from scheduling.errors import EventNotFoundError
from scheduling.overlap import EventBlock, committed_cells, split_into_blocks
from scheduling.preferences import Preferences, ViewMode
from scheduling.roster import RosterAssignment, RosterSnapshot
from scheduling.slot_grid import DAYS_IN_WEEK, CellKey, SlotGrid, TimeSlot, compose_week
from .crud import crud_absence, crud_availability, crud_event, crud_preferences, crud_roster
from .models import Absence, AvailabilityOverride, AvailabilitySlot, Event, RosterSignup


def to_assignment(signup: RosterSignup) -> RosterAssignment:
    return RosterAssignment(
        signup_id=signup.id,
        user_id=signup.user_id,
        role=RosterRole(signup.role_name),
        position=signup.position,
    )


def to_time_slot(slot: AvailabilitySlot) -> TimeSlot:
    return TimeSlot(slot.day_of_week, slot.hour, SlotStatus(slot.status))


def event_to_blocks(event: Event, week_start: datetime) -> list[EventBlock]:
    """Блоки события по дням недели в часовом поясе week_start."""
    start = datetime.fromtimestamp(event.event_timestamp, tz=week_start.tzinfo)
    end = start + timedelta(minutes=event.duration_minutes)
    metadata = {
        "title": event.title,
        "event_timestamp": event.event_timestamp,
        "roster_kind": event.roster_kind,
    }
    return split_into_blocks(event.id, start, end, week_start, metadata)


def week_bounds(week_start: datetime) -> tuple[int, int]:
    week_end = week_start + timedelta(days=DAYS_IN_WEEK)
    return int(week_start.timestamp()), int(week_end.timestamp())


def absence_days(absences: Iterable[Absence], first_day: date) -> set[int]:
    """Номера дней недели, начинающейся с first_day, попадающие в отсутствия."""
    days = set()
    for absence in absences:
        for day in range(DAYS_IN_WEEK):
            if absence.start_date <= first_day + timedelta(days=day) <= absence.end_date:
                days.add(day)
    return days


def override_cells(overrides: Iterable[AvailabilityOverride], first_day: date) -> dict[CellKey, SlotStatus]:
    cells = {}
    for override in overrides:
        day = (override.on_date - first_day).days
        if 0 <= day < DAYS_IN_WEEK:
            cells[(day, override.hour)] = SlotStatus(override.status)
    return cells


async def load_week_grids(
    session: AsyncSession, user_ids: Sequence[int], week_start: datetime
) -> list[SlotGrid]:
    """
    Сетки недели: сохраненный шаблон, события, на которые записан пользователь,
    разовые правки и отсутствия.
    """
    first_day = week_start.date()
    last_day = first_day + timedelta(days=DAYS_IN_WEEK - 1)
    stored = await crud_availability.get_availability_for_users(session, user_ids)
    overrides = await crud_availability.get_overrides_for_users(session, user_ids, first_day, last_day)
    absences = await crud_absence.get_absences_for_users(session, user_ids, first_day, last_day)
    start_ts, end_ts = week_bounds(week_start)
    grids = []
    for user_id in user_ids:
        events = await crud_event.get_user_events_in_range(session, user_id, start_ts, end_ts)
        blocks = [block for event in events for block in event_to_blocks(event, week_start)]
        grids.append(compose_week(
            user_id,
            [to_time_slot(s) for s in stored[user_id]],
            committed=committed_cells(blocks),
            blocked_days=absence_days(absences[user_id], first_day),
            overrides=override_cells(overrides[user_id], first_day),
        ))
    return grids


class SqlRosterStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def fetch_roster(self, event_id: int) -> RosterSnapshot:
        async with self.session_maker() as session:
            event = await crud_event.get_event_by_id(session, event_id)
            if event is None:
                raise EventNotFoundError(event_id)
            signups = await crud_roster.get_signups(session, event_id)
        return RosterSnapshot(
            event_id=event_id,
            kind=RosterKind(event.roster_kind),
            capacities={RosterRole(r.role_name): r.capacity for r in event.roles},
            assignments=[to_assignment(s) for s in signups],
        )

    async def join_roster(
        self, event_id: int, user_id: int, role: RosterRole, position: int
    ) -> RosterAssignment:
        async with self.session_maker() as session:
            signup = await crud_roster.reserve_position(session, event_id, user_id, role.value, position)
        return to_assignment(signup)

    async def leave_roster(self, event_id: int, user_id: int) -> RosterAssignment:
        async with self.session_maker() as session:
            signup = await crud_roster.remove_signup(session, event_id, user_id)
        return to_assignment(signup)

    async def move_assignment(
        self, event_id: int, signup_id: int, role: RosterRole, position: int
    ) -> RosterAssignment:
        async with self.session_maker() as session:
            signup = await crud_roster.move_signup(session, event_id, signup_id, role.value, position)
        return to_assignment(signup)

    async def fetch_roster_availability(self, event_id: int, week_start: datetime) -> list[SlotGrid]:
        async with self.session_maker() as session:
            user_ids = await crud_roster.get_roster_user_ids(session, event_id)
            return await load_week_grids(session, list(user_ids), week_start)


class SqlAvailabilityStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def fetch_availability(self, owner_id: int) -> list[TimeSlot]:
        async with self.session_maker() as session:
            slots = await crud_availability.get_availability(session, owner_id)
        return [to_time_slot(s) for s in slots]

    async def fetch_week_grid(self, owner_id: int, week_start: datetime) -> SlotGrid:
        async with self.session_maker() as session:
            grids = await load_week_grids(session, [owner_id], week_start)
        return grids[0]

    async def fetch_week_grids(self, owner_ids: Sequence[int], week_start: datetime) -> list[SlotGrid]:
        async with self.session_maker() as session:
            return await load_week_grids(session, list(owner_ids), week_start)

    async def save_availability_edit(
        self, owner_id: int, day: int, hour: int, status: SlotStatus | None
    ) -> None:
        async with self.session_maker() as session:
            await crud_availability.save_availability_edit(
                session, owner_id, day, hour, status.value if status is not None else None
            )


class SqlEventStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def fetch_events(self, week_start: datetime, guild_id: int | None = None) -> list[EventBlock]:
        start_ts, end_ts = week_bounds(week_start)
        async with self.session_maker() as session:
            events = await crud_event.get_events_in_range(session, start_ts, end_ts, guild_id)
        return [block for event in events for block in event_to_blocks(event, week_start)]


class SqlPreferencesStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def load_preferences(self, user_id: int) -> Preferences | None:
        async with self.session_maker() as session:
            row = await crud_preferences.get_preferences(session, user_id)
        if row is None:
            return None
        return Preferences(view_mode=ViewMode(row.view_mode), timezone=row.timezone)

    async def save_preferences(self, user_id: int, preferences: Preferences) -> None:
        async with self.session_maker() as session:
            await crud_preferences.upsert_preferences(
                session, user_id, preferences.view_mode.value, preferences.timezone
            )
