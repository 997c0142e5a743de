from typing import Sequence
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from scheduling.errors import (
    AlreadyJoinedError,
    AssignmentNotFoundError,
    PositionConflictError,
    RosterFullError,
    SignupNotFoundError,
)
from ..models import EventRole, RosterSignup

async def get_signups(session: AsyncSession, event_id: int) -> Sequence[RosterSignup]:
    """Все записи на событие в порядке записи."""
    result = await session.execute(
        select(RosterSignup).where(RosterSignup.event_id == event_id).order_by(RosterSignup.id)
    )
    return result.scalars().all()

async def get_capacities(session: AsyncSession, event_id: int) -> dict[str, int]:
    result = await session.execute(
        select(EventRole.role_name, EventRole.capacity).where(EventRole.event_id == event_id)
    )
    return {role: capacity for role, capacity in result.all()}

async def get_user_signup(session: AsyncSession, event_id: int, user_id: int) -> RosterSignup | None:
    result = await session.execute(
        select(RosterSignup).filter_by(event_id=event_id, user_id=user_id)
    )
    return result.scalar_one_or_none()

async def reserve_position(
    session: AsyncSession, event_id: int, user_id: int, role_name: str, position: int
) -> RosterSignup:
    """
    Атомарно занимает позицию роли. Уникальные ограничения таблицы решают гонку
    одновременных записей: проигравший получает PositionConflictError.
    """
    capacities = await get_capacities(session, event_id)
    if not 1 <= position <= capacities.get(role_name, 0):
        raise RosterFullError(event_id, role_name)

    signup = RosterSignup(event_id=event_id, user_id=user_id, role_name=role_name, position=position)
    session.add(signup)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        if await get_user_signup(session, event_id, user_id) is not None:
            raise AlreadyJoinedError(event_id, user_id)
        raise PositionConflictError(event_id, role_name, position)
    await session.refresh(signup)
    return signup

async def remove_signup(session: AsyncSession, event_id: int, user_id: int) -> RosterSignup:
    """Удаляет запись пользователя и возвращает её."""
    signup = await get_user_signup(session, event_id, user_id)
    if signup is None:
        raise AssignmentNotFoundError(event_id, user_id)
    await session.execute(delete(RosterSignup).where(RosterSignup.id == signup.id))
    await session.commit()
    return signup

async def move_signup(
    session: AsyncSession, event_id: int, signup_id: int, role_name: str, position: int
) -> RosterSignup:
    """Переносит запись на другую позицию (перевод из запаса)."""
    signup = await session.get(RosterSignup, signup_id)
    if signup is None or signup.event_id != event_id:
        raise SignupNotFoundError(event_id, signup_id)
    signup.role_name = role_name
    signup.position = position
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise PositionConflictError(event_id, role_name, position)
    await session.refresh(signup)
    return signup

async def get_roster_user_ids(session: AsyncSession, event_id: int) -> Sequence[int]:
    result = await session.execute(
        select(RosterSignup.user_id).where(RosterSignup.event_id == event_id).order_by(RosterSignup.id)
    )
    return result.scalars().all()
