import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class BotConfig:
    discord_token: str
    database_url: str
    test_guild_id: int | None = None
    default_timezone: str = "UTC"
    default_view_mode: str = "rolling"
    join_max_attempts: int = 3
    save_debounce_seconds: float = 1.5
    fetch_timeout_seconds: float = 5.0


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise Exception(f"Не найдена переменная {name} в .env файле")
    return value


def load_config() -> BotConfig:
    """Собирает конфигурацию бота из окружения (.env подхватывается автоматически)."""
    load_dotenv()
    guild_id = os.getenv("TEST_GUILD_ID")
    return BotConfig(
        discord_token=_require("DISCORD_TOKEN"),
        database_url=_require("DATABASE_URL"),
        test_guild_id=int(guild_id) if guild_id else None,
        default_timezone=os.getenv("DEFAULT_TIMEZONE", "UTC"),
        default_view_mode=os.getenv("DEFAULT_VIEW_MODE", "rolling"),
        join_max_attempts=int(os.getenv("JOIN_MAX_ATTEMPTS", "3")),
        save_debounce_seconds=float(os.getenv("SAVE_DEBOUNCE_SECONDS", "1.5")),
        fetch_timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", "5")),
    )
