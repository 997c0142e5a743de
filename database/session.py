from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from .base import Base


def create_engine(database_url: str, **engine_kwargs) -> AsyncEngine:
    if not database_url:
        raise Exception("Не найдена переменная DATABASE_URL в .env файле")
    return create_async_engine(database_url, **engine_kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Фабрика сессий для переданного движка."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Создает недостающие таблицы. Существующие не трогает."""
    from . import models  # noqa: F401  регистрирует модели в метаданных

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
