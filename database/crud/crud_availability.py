from datetime import date
from typing import Sequence
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from scheduling.enums import EDITABLE_STATUSES, SlotStatus
from scheduling.errors import LockedError
from scheduling.slot_grid import OVERRIDE_STATUSES
from ..models import AvailabilityOverride, AvailabilitySlot

EDITABLE_VALUES = [s.value for s in EDITABLE_STATUSES]

async def get_availability(session: AsyncSession, user_id: int) -> Sequence[AvailabilitySlot]:
    """Возвращает сохраненную сетку доступности пользователя."""
    result = await session.execute(
        select(AvailabilitySlot)
        .where(AvailabilitySlot.user_id == user_id)
        .order_by(AvailabilitySlot.day_of_week, AvailabilitySlot.hour)
    )
    return result.scalars().all()

async def get_availability_for_users(
    session: AsyncSession, user_ids: Sequence[int]
) -> dict[int, list[AvailabilitySlot]]:
    """Сетки нескольких пользователей одним запросом."""
    grouped: dict[int, list[AvailabilitySlot]] = {user_id: [] for user_id in user_ids}
    if not user_ids:
        return grouped
    result = await session.execute(
        select(AvailabilitySlot).where(AvailabilitySlot.user_id.in_(user_ids))
    )
    for slot in result.scalars().all():
        grouped[slot.user_id].append(slot)
    return grouped

async def save_availability_edit(
    session: AsyncSession, user_id: int, day_of_week: int, hour: int, status: str | None
) -> None:
    """
    Сохраняет одну правку ячейки: status=None удаляет ячейку.
    Ячейки, заблокированные внешней политикой, правкой не меняются.
    """
    result = await session.execute(
        select(AvailabilitySlot).filter_by(user_id=user_id, day_of_week=day_of_week, hour=hour)
    )
    slot = result.scalar_one_or_none()

    if slot is not None and slot.status not in EDITABLE_VALUES:
        raise LockedError(day_of_week, hour, slot.status)

    if status is None:
        await session.execute(
            delete(AvailabilitySlot).where(
                AvailabilitySlot.user_id == user_id,
                AvailabilitySlot.day_of_week == day_of_week,
                AvailabilitySlot.hour == hour,
                AvailabilitySlot.status.in_(EDITABLE_VALUES),
            )
        )
    else:
        status = SlotStatus(status)
        if status not in EDITABLE_STATUSES:
            raise LockedError(day_of_week, hour, status.value)
        if slot is None:
            session.add(AvailabilitySlot(
                user_id=user_id, day_of_week=day_of_week, hour=hour, status=status.value
            ))
        else:
            slot.status = status.value
    await session.commit()

async def block_cell(session: AsyncSession, user_id: int, day_of_week: int, hour: int) -> None:
    """Помечает ячейку недоступной по решению администратора."""
    result = await session.execute(
        select(AvailabilitySlot).filter_by(user_id=user_id, day_of_week=day_of_week, hour=hour)
    )
    slot = result.scalar_one_or_none()
    if slot is None:
        session.add(AvailabilitySlot(
            user_id=user_id, day_of_week=day_of_week, hour=hour, status=SlotStatus.BLOCKED.value
        ))
    else:
        slot.status = SlotStatus.BLOCKED.value
    await session.commit()

async def set_override(
    session: AsyncSession, user_id: int, on_date: date, hour: int, status: str | None
) -> None:
    """Разовая правка часа на конкретную дату; status=None снимает правку."""
    result = await session.execute(
        select(AvailabilityOverride).filter_by(user_id=user_id, on_date=on_date, hour=hour)
    )
    override = result.scalar_one_or_none()

    if status is None:
        if override is not None:
            await session.delete(override)
    else:
        status = SlotStatus(status)
        if status not in OVERRIDE_STATUSES:
            raise ValueError(f"Недопустимый статус правки: {status.value}")
        if override is None:
            session.add(AvailabilityOverride(user_id=user_id, on_date=on_date, hour=hour, status=status.value))
        else:
            override.status = status.value
    await session.commit()

async def get_overrides_for_users(
    session: AsyncSession, user_ids: Sequence[int], first_day: date, last_day: date
) -> dict[int, list[AvailabilityOverride]]:
    grouped: dict[int, list[AvailabilityOverride]] = {user_id: [] for user_id in user_ids}
    if not user_ids:
        return grouped
    result = await session.execute(
        select(AvailabilityOverride).where(
            AvailabilityOverride.user_id.in_(user_ids),
            AvailabilityOverride.on_date >= first_day,
            AvailabilityOverride.on_date <= last_day,
        )
    )
    for override in result.scalars().all():
        grouped[override.user_id].append(override)
    return grouped
