from sqlalchemy.ext.asyncio import AsyncSession
from ..models import UserPreferences

async def get_preferences(session: AsyncSession, user_id: int) -> UserPreferences | None:
    return await session.get(UserPreferences, user_id)

async def upsert_preferences(
    session: AsyncSession, user_id: int, view_mode: str, timezone: str
) -> UserPreferences:
    """Создает или обновляет настройки пользователя."""
    preferences = await session.get(UserPreferences, user_id)
    if preferences is None:
        preferences = UserPreferences(user_id=user_id, view_mode=view_mode, timezone=timezone)
        session.add(preferences)
    else:
        preferences.view_mode = view_mode
        preferences.timezone = timezone
    await session.commit()
    return preferences
