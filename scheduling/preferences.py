"""
Пользовательские настройки отображения: режим недели и часовой пояс.

Сервис получает конфигурацию и хранилище явно, держит локальный кэш и
синхронизирует его с хранилищем через load/save.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    WEEK = "week"
    ROLLING = "rolling"


@dataclass(frozen=True)
class Preferences:
    view_mode: ViewMode
    timezone: str

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class PreferencesStore(Protocol):
    async def load_preferences(self, user_id: int) -> Preferences | None: ...

    async def save_preferences(self, user_id: int, preferences: Preferences) -> None: ...


def validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone '{name}'") from exc
    return name


class PreferencesService:
    def __init__(self, config, store: PreferencesStore):
        self.defaults = Preferences(
            view_mode=ViewMode(config.default_view_mode),
            timezone=validate_timezone(config.default_timezone),
        )
        self.store = store
        self._cache: dict[int, Preferences] = {}

    async def load(self, user_id: int) -> Preferences:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached
        preferences = await self.store.load_preferences(user_id) or self.defaults
        self._cache[user_id] = preferences
        return preferences

    async def save(
        self, user_id: int, view_mode: str | None = None, timezone: str | None = None
    ) -> Preferences:
        current = await self.load(user_id)
        updated = Preferences(
            view_mode=ViewMode(view_mode) if view_mode else current.view_mode,
            timezone=validate_timezone(timezone) if timezone else current.timezone,
        )
        await self.store.save_preferences(user_id, updated)
        self._cache[user_id] = updated
        logger.info("Saved preferences for user %s: %s, %s",
                    user_id, updated.view_mode.value, updated.timezone)
        return updated

    def forget(self, user_id: int) -> None:
        self._cache.pop(user_id, None)
