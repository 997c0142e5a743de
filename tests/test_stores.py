"""
Хранилища поверх SQLAlchemy: уникальность записей, каскадное удаление,
сборка недельных сеток из шаблона и событий.
"""
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from database.crud import crud_absence, crud_availability, crud_event, crud_roster, crud_template, crud_user
from database.models import RosterSignup
from database.stores import SqlAvailabilityStore, SqlEventStore, SqlRosterStore
from scheduling.enums import RosterKind, RosterRole, SlotStatus
from scheduling.errors import (
    AlreadyJoinedError,
    AssignmentNotFoundError,
    EventNotFoundError,
    LockedError,
    PositionConflictError,
    RosterFullError,
    SignupNotFoundError,
)
from scheduling.roster import RosterAssignmentEngine

# Понедельник 2024-01-01 00:00 UTC
WEEK_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def test_reserve_position_respects_uniqueness(session, create_event):
    event = await create_event({"tank": 2})
    event_id = event.id

    first = await crud_roster.reserve_position(session, event_id, 1, "tank", 1)
    assert first.position == 1

    with pytest.raises(PositionConflictError):
        await crud_roster.reserve_position(session, event_id, 2, "tank", 1)
    with pytest.raises(AlreadyJoinedError):
        await crud_roster.reserve_position(session, event_id, 1, "tank", 2)
    with pytest.raises(RosterFullError):
        await crud_roster.reserve_position(session, event_id, 2, "tank", 3)
    with pytest.raises(RosterFullError):
        await crud_roster.reserve_position(session, event_id, 2, "healer", 1)

    assert [s.user_id for s in await crud_roster.get_signups(session, event_id)] == [1]


async def test_database_rejects_duplicate_position_directly(session, create_event):
    event = await create_event({"tank": 2})
    session.add(RosterSignup(event_id=event.id, user_id=1, role_name="tank", position=1))
    session.add(RosterSignup(event_id=event.id, user_id=2, role_name="tank", position=1))
    with pytest.raises(IntegrityError):
        await session.commit()
    await session.rollback()


async def test_remove_and_move_signup(session, create_event):
    event = await create_event({"player": 1, "bench": 1}, roster_kind="generic")
    await crud_roster.reserve_position(session, event.id, 1, "player", 1)
    bench = await crud_roster.reserve_position(session, event.id, 2, "bench", 1)
    event_id, bench_id = event.id, bench.id

    with pytest.raises(PositionConflictError):
        await crud_roster.move_signup(session, event_id, bench_id, "player", 1)

    removed = await crud_roster.remove_signup(session, event_id, 1)
    assert removed.user_id == 1
    moved = await crud_roster.move_signup(session, event_id, bench_id, "player", 1)
    assert (moved.role_name, moved.position) == ("player", 1)

    with pytest.raises(AssignmentNotFoundError):
        await crud_roster.remove_signup(session, event_id, 1)
    with pytest.raises(SignupNotFoundError) as excinfo:
        await crud_roster.move_signup(session, event_id, 999, "player", 1)
    assert excinfo.value.signup_id == 999
    assert "Signup 999" in str(excinfo.value)


async def test_cancel_event_removes_roster(session, create_event):
    event = await create_event({"tank": 2})
    await crud_roster.reserve_position(session, event.id, 1, "tank", 1)

    assert await crud_event.cancel_event(session, event.id)
    assert await crud_event.get_event_by_id(session, event.id) is None
    assert await crud_roster.get_signups(session, event.id) == []
    assert not await crud_event.cancel_event(session, event.id)


async def test_engine_over_sql_store(session_maker, create_event):
    event = await create_event({"player": 1, "bench": 2}, roster_kind="generic")
    store = SqlRosterStore(session_maker)
    engine = RosterAssignmentEngine(store)

    first = await engine.join(event.id, 1)
    second = await engine.join(event.id, 2)
    assert (first.role, second.role) == (RosterRole.PLAYER, RosterRole.BENCH)

    await engine.leave(event.id, 1)
    snapshot = await store.fetch_roster(event.id)
    assert snapshot.kind is RosterKind.GENERIC
    assert [(a.user_id, a.role, a.position) for a in snapshot.assignments] == [(2, RosterRole.PLAYER, 1)]


async def test_fetch_missing_roster_raises(session_maker):
    with pytest.raises(EventNotFoundError):
        await SqlRosterStore(session_maker).fetch_roster(999)


async def test_save_availability_edit_roundtrip(session_maker, session):
    store = SqlAvailabilityStore(session_maker)
    await store.save_availability_edit(7, 0, 18, SlotStatus.AVAILABLE)
    await store.save_availability_edit(7, 0, 19, SlotStatus.AVAILABLE)
    await store.save_availability_edit(7, 0, 18, None)

    assert [(s.day_of_week, s.hour, s.status) for s in await store.fetch_availability(7)] == [
        (0, 19, SlotStatus.AVAILABLE)
    ]


async def test_blocked_cell_cannot_be_edited(session_maker, session):
    await crud_availability.block_cell(session, 7, 2, 10)
    store = SqlAvailabilityStore(session_maker)

    with pytest.raises(LockedError):
        await store.save_availability_edit(7, 2, 10, None)
    with pytest.raises(LockedError):
        await store.save_availability_edit(7, 2, 11, SlotStatus.COMMITTED)

    [slot] = await store.fetch_availability(7)
    assert slot.status is SlotStatus.BLOCKED


async def test_week_grid_marks_joined_events_committed(session, session_maker, create_event):
    await crud_user.get_or_create_user(session, 7, "member")
    store = SqlAvailabilityStore(session_maker)
    await store.save_availability_edit(7, 0, 20, SlotStatus.AVAILABLE)
    await store.save_availability_edit(7, 0, 18, SlotStatus.AVAILABLE)

    # Понедельник 20:00-22:00 UTC
    event = await create_event({"player": 10}, roster_kind="generic")
    await crud_roster.reserve_position(session, event.id, 7, "player", 1)

    grid = await store.fetch_week_grid(7, WEEK_START)
    assert grid.get(0, 18) is SlotStatus.AVAILABLE
    assert grid.get(0, 20) is SlotStatus.COMMITTED
    assert grid.get(0, 21) is SlotStatus.COMMITTED

    following = await store.fetch_week_grid(7, WEEK_START + timedelta(days=7))
    assert following.get(0, 20) is SlotStatus.AVAILABLE

    [roster_grid] = await SqlRosterStore(session_maker).fetch_roster_availability(event.id, WEEK_START)
    assert roster_grid == grid


async def test_week_grid_applies_overrides_and_absences(session, session_maker, create_event):
    await crud_user.get_or_create_user(session, 7, "member")
    store = SqlAvailabilityStore(session_maker)
    for day, hour in [(0, 18), (0, 20), (2, 18)]:
        await store.save_availability_edit(7, day, hour, SlotStatus.AVAILABLE)

    # Понедельник 20:00-22:00 UTC
    event = await create_event({"player": 10}, roster_kind="generic")
    await crud_roster.reserve_position(session, event.id, 7, "player", 1)

    await crud_availability.set_override(session, 7, date(2024, 1, 1), 20, "available")
    await crud_availability.set_override(session, 7, date(2024, 1, 1), 18, "blocked")
    await crud_absence.create_absence(session, 7, date(2024, 1, 3), date(2024, 1, 3), "отпуск")
    await crud_absence.create_absence(session, 7, date(2024, 1, 10), date(2024, 1, 12))

    grid = await store.fetch_week_grid(7, WEEK_START)
    assert grid.get(0, 20) is SlotStatus.FREED
    assert grid.get(0, 21) is SlotStatus.COMMITTED
    assert grid.get(0, 18) is SlotStatus.BLOCKED
    assert grid.get(2, 18) is SlotStatus.BLOCKED

    # Правки привязаны к датам и на следующую неделю не переходят
    following = await store.fetch_week_grid(7, WEEK_START + timedelta(days=7))
    assert following.get(0, 18) is SlotStatus.AVAILABLE
    assert following.get(0, 20) is SlotStatus.AVAILABLE
    assert following.get(2, 18) is SlotStatus.BLOCKED


async def test_clearing_override_restores_template(session, session_maker):
    store = SqlAvailabilityStore(session_maker)
    await store.save_availability_edit(7, 0, 18, SlotStatus.AVAILABLE)

    await crud_availability.set_override(session, 7, date(2024, 1, 1), 18, "blocked")
    assert (await store.fetch_week_grid(7, WEEK_START)).get(0, 18) is SlotStatus.BLOCKED
    await crud_availability.set_override(session, 7, date(2024, 1, 1), 18, None)
    assert (await store.fetch_week_grid(7, WEEK_START)).get(0, 18) is SlotStatus.AVAILABLE

    with pytest.raises(ValueError):
        await crud_availability.set_override(session, 7, date(2024, 1, 1), 18, "committed")


async def test_absence_lifecycle(session):
    absence = await crud_absence.create_absence(session, 7, date(2024, 1, 3), date(2024, 1, 5))
    absence_id = absence.id
    assert [a.id for a in await crud_absence.get_absences(session, 7)] == [absence_id]

    # Чужое отсутствие удалить нельзя
    assert not await crud_absence.delete_absence(session, 8, absence_id)
    assert await crud_absence.delete_absence(session, 7, absence_id)
    assert list(await crud_absence.get_absences(session, 7)) == []

    with pytest.raises(ValueError):
        await crud_absence.create_absence(session, 7, date(2024, 1, 5), date(2024, 1, 3))


async def test_fetch_events_splits_by_day(session_maker, create_event):
    # Воскресенье 23:00 UTC на 2 часа: в неделю попадает только первый час
    sunday_late = int((WEEK_START + timedelta(days=6, hours=23)).timestamp())
    await create_event({"tank": 1}, event_timestamp=sunday_late, title="Поздний")
    await create_event({"tank": 1}, guild_id=2, title="Чужой")

    blocks = await SqlEventStore(session_maker).fetch_events(WEEK_START, guild_id=1)

    assert [(b.metadata["title"], b.day_of_week, b.start_hour, b.end_hour) for b in blocks] == [
        ("Поздний", 6, 23, 24)
    ]


async def test_templates_keep_capacities(session):
    await crud_template.create_template_with_roles(session, 1, "Рейд 25", "role_based", {"tank": 2, "healer": 5})
    template = await crud_template.get_template_by_name(session, 1, "Рейд 25")
    assert template.capacities == {"tank": 2, "healer": 5}
    assert list(await crud_template.search_template_names(session, 1, "25")) == ["Рейд 25"]
    assert await crud_template.delete_template(session, 1, "Рейд 25")
    assert not await crud_template.delete_template(session, 1, "Рейд 25")
