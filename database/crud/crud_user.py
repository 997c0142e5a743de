from sqlalchemy.ext.asyncio import AsyncSession
from ..models import BotRole, User

async def get_or_create_user(session: AsyncSession, user_id: int, username: str) -> User:
    """Пользователь по discord id; имя обновляется, если сменилось."""
    user = await session.get(User, user_id)
    if user is None:
        user = User(user_id=user_id, username=username, bot_role=BotRole.USER)
        session.add(user)
    elif user.username == username:
        return user
    else:
        user.username = username

    await session.commit()
    await session.refresh(user)
    return user

async def set_user_role(session: AsyncSession, user: User, role: str) -> User:
    if role not in BotRole.ALL:
        raise ValueError(f"Неизвестная роль бота: {role}")
    user.bot_role = role
    await session.commit()
    return user
