from datetime import date
from typing import Sequence
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from ..models import Absence

async def create_absence(
    session: AsyncSession, user_id: int, start_date: date, end_date: date, reason: str | None = None
) -> Absence:
    """Создает период отсутствия (обе даты включительно)."""
    if end_date < start_date:
        raise ValueError("Дата окончания раньше даты начала")
    absence = Absence(user_id=user_id, start_date=start_date, end_date=end_date, reason=reason)
    session.add(absence)
    await session.commit()
    await session.refresh(absence)
    return absence

async def delete_absence(session: AsyncSession, user_id: int, absence_id: int) -> bool:
    """Удаляет отсутствие. Чужие записи не трогает."""
    result = await session.execute(
        delete(Absence).where(Absence.id == absence_id, Absence.user_id == user_id)
    )
    await session.commit()
    return result.rowcount > 0

async def get_absences(session: AsyncSession, user_id: int) -> Sequence[Absence]:
    result = await session.execute(
        select(Absence).where(Absence.user_id == user_id).order_by(Absence.start_date)
    )
    return result.scalars().all()

async def get_absences_for_users(
    session: AsyncSession, user_ids: Sequence[int], first_day: date, last_day: date
) -> dict[int, list[Absence]]:
    """Отсутствия нескольких пользователей, пересекающиеся с [first_day, last_day]."""
    grouped: dict[int, list[Absence]] = {user_id: [] for user_id in user_ids}
    if not user_ids:
        return grouped
    result = await session.execute(
        select(Absence).where(
            Absence.user_id.in_(user_ids),
            Absence.start_date <= last_day,
            Absence.end_date >= first_day,
        )
    )
    for absence in result.scalars().all():
        grouped[absence.user_id].append(absence)
    return grouped
