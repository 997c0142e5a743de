from zoneinfo import ZoneInfo

import pytest

from config import BotConfig
from database.stores import SqlPreferencesStore
from scheduling.preferences import Preferences, PreferencesService, ViewMode, validate_timezone


class MemoryPreferencesStore:
    def __init__(self):
        self.rows = {}
        self.loads = 0

    async def load_preferences(self, user_id):
        self.loads += 1
        return self.rows.get(user_id)

    async def save_preferences(self, user_id, preferences):
        self.rows[user_id] = preferences


@pytest.fixture
def config():
    return BotConfig(discord_token="token", database_url="sqlite+aiosqlite://",
                     default_timezone="Europe/Moscow", default_view_mode="week")


async def test_defaults_come_from_config(config):
    service = PreferencesService(config, MemoryPreferencesStore())
    preferences = await service.load(1)
    assert preferences == Preferences(ViewMode.WEEK, "Europe/Moscow")
    assert preferences.tzinfo == ZoneInfo("Europe/Moscow")


async def test_save_updates_only_given_fields(config):
    store = MemoryPreferencesStore()
    service = PreferencesService(config, store)

    await service.save(1, view_mode="rolling")
    saved = await service.save(1, timezone="Asia/Tokyo")

    assert saved == Preferences(ViewMode.ROLLING, "Asia/Tokyo")
    assert store.rows[1] == saved


async def test_load_is_cached_until_forgotten(config):
    store = MemoryPreferencesStore()
    service = PreferencesService(config, store)
    await service.load(1)
    await service.load(1)
    assert store.loads == 1

    service.forget(1)
    await service.load(1)
    assert store.loads == 2


async def test_unknown_timezone_rejected(config):
    store = MemoryPreferencesStore()
    service = PreferencesService(config, store)
    with pytest.raises(ValueError):
        await service.save(1, timezone="Mars/Olympus")
    assert store.rows == {}


def test_invalid_default_timezone_fails_fast():
    bad = BotConfig(discord_token="t", database_url="d", default_timezone="Nowhere/City")
    with pytest.raises(ValueError):
        PreferencesService(bad, MemoryPreferencesStore())


def test_validate_timezone_returns_name():
    assert validate_timezone("UTC") == "UTC"


async def test_preferences_persist_in_database(config, session_maker):
    store = SqlPreferencesStore(session_maker)
    assert await store.load_preferences(5) is None

    await PreferencesService(config, store).save(5, view_mode="rolling", timezone="UTC")
    await PreferencesService(config, store).save(5, timezone="Europe/Berlin")

    assert await store.load_preferences(5) == Preferences(ViewMode.ROLLING, "Europe/Berlin")
