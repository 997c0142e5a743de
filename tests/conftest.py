"""
Фикстуры тестов: сетки, хранилища-заглушки и БД в памяти (sqlite+aiosqlite).
"""
import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from database.crud import crud_event, crud_user
from database.models import BotRole
from database.session import create_engine, create_session_maker, create_tables
from scheduling.enums import SlotStatus
from scheduling.slot_grid import SlotGrid, TimeSlot


# ============ Сетки ============

@pytest.fixture
def make_grid():
    """Сетка из словаря {(day, hour): status}."""
    def factory(cells: dict | None = None, owner_id: int = 1) -> SlotGrid:
        return SlotGrid.from_mapping(owner_id, cells or {})
    return factory


@pytest.fixture
def mixed_grid():
    return SlotGrid(1, [
        TimeSlot(0, 10, SlotStatus.AVAILABLE),
        TimeSlot(0, 11, SlotStatus.AVAILABLE),
        TimeSlot(0, 12, SlotStatus.COMMITTED),
        TimeSlot(0, 13, SlotStatus.BLOCKED),
        TimeSlot(0, 14, SlotStatus.FREED),
    ])


# ============ База данных ============

@pytest_asyncio.fixture
async def engine():
    engine = create_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def organizer(session):
    user = await crud_user.get_or_create_user(session, 100, "organizer")
    return await crud_user.set_user_role(session, user, BotRole.EVENT_CREATOR)


@pytest.fixture
def create_event(session, organizer):
    """Создает событие от имени организатора. По умолчанию: понедельник 2024-01-01 20:00 UTC, 2 часа."""
    async def factory(
        capacities: dict[str, int],
        roster_kind: str = "role_based",
        event_timestamp: int = 1704139200,
        duration_minutes: int = 120,
        guild_id: int = 1,
        title: str = "Рейд",
    ):
        return await crud_event.create_event_with_roles(
            session, owner_id=organizer.user_id, guild_id=guild_id, title=title,
            description=None, event_timestamp=event_timestamp,
            duration_minutes=duration_minutes, roster_kind=roster_kind, capacities=capacities,
        )
    return factory
