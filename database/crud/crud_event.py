from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from ..models import Event, EventRole, RosterSignup

async def create_event_with_roles(
    session: AsyncSession, owner_id: int, guild_id: int | None, title: str, description: str | None,
    event_timestamp: int, duration_minutes: int, roster_kind: str, capacities: dict[str, int]
) -> Event:
    """Создает событие и вместимость всех его ролей."""
    new_event = Event(
        owner_id=owner_id,
        guild_id=guild_id,
        title=title,
        description=description,
        event_timestamp=event_timestamp,
        duration_minutes=duration_minutes,
        roster_kind=roster_kind,
    )
    new_event.roles = [
        EventRole(role_name=role, capacity=capacity)
        for role, capacity in capacities.items()
    ]
    session.add(new_event)
    await session.commit()
    await session.refresh(new_event)
    return new_event

async def get_event_by_id(session: AsyncSession, event_id: int) -> Event | None:
    """Получает событие по его ID, подгружая роли и записи."""
    result = await session.execute(
        select(Event)
        .options(selectinload(Event.roles), selectinload(Event.signups))
        .filter_by(id=event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()

async def update_event_message_info(
    session: AsyncSession, event_id: int, message_id: int, channel_id: int
) -> None:
    """Обновляет ID сообщения и канала для события."""
    event = await get_event_by_id(session, event_id)
    if event:
        event.message_id = message_id
        event.channel_id = channel_id
        await session.commit()

async def get_events_in_range(
    session: AsyncSession, start_ts: int, end_ts: int, guild_id: int | None = None
) -> Sequence[Event]:
    """События, пересекающиеся с интервалом [start_ts, end_ts)."""
    query = select(Event).where(
        Event.event_timestamp < end_ts,
        Event.event_timestamp + Event.duration_minutes * 60 > start_ts,
    )
    if guild_id is not None:
        query = query.where(Event.guild_id == guild_id)
    result = await session.execute(query.order_by(Event.event_timestamp))
    return result.scalars().all()

async def get_user_events_in_range(
    session: AsyncSession, user_id: int, start_ts: int, end_ts: int
) -> Sequence[Event]:
    """События в интервале, на которые пользователь записан."""
    result = await session.execute(
        select(Event)
        .join(RosterSignup, RosterSignup.event_id == Event.id)
        .where(
            RosterSignup.user_id == user_id,
            Event.event_timestamp < end_ts,
            Event.event_timestamp + Event.duration_minutes * 60 > start_ts,
        )
        .order_by(Event.event_timestamp)
    )
    return result.scalars().all()

async def cancel_event(session: AsyncSession, event_id: int) -> bool:
    """Удаляет событие вместе с ролями и всеми записями."""
    event = await get_event_by_id(session, event_id)
    if event:
        await session.delete(event)
        await session.commit()
        return True
    return False
