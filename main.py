import logging
import os

import disnake
from disnake.ext import commands

from config import load_config
from database.session import create_engine, create_session_maker, create_tables
from database.stores import SqlPreferencesStore
from scheduling.preferences import PreferencesService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

config = load_config()

# Задаем намерения (intents)
intents = disnake.Intents.default()
intents.members = True # Нужен список участников для тепловой карты сервера

# Создаем экземпляр бота
bot = commands.Bot(
    command_prefix="!", # Префикс для текстовых команд (если понадобятся)
    intents=intents,
    test_guilds=[config.test_guild_id] if config.test_guild_id else None, # Сервер для быстрой регистрации команд
)

engine = create_engine(config.database_url)
bot.config = config
bot.session_maker = create_session_maker(engine)
bot.preferences = PreferencesService(config, SqlPreferencesStore(bot.session_maker))

tables_ready = False


@bot.event
async def on_ready():
    global tables_ready
    if not tables_ready:
        await create_tables(engine)
        tables_ready = True
    logger.info("Бот %s запущен и готов к работе!", bot.user)
    logger.info("disnake version: %s", disnake.__version__)


# Загружаем все файлы .py из папки cogs
for filename in sorted(os.listdir("./cogs")):
    if filename.endswith(".py") and not filename.startswith("__"):
        try:
            bot.load_extension(f"cogs.{filename[:-3]}")
            logger.info("Успешно загружен ког: %s", filename)
        except Exception as e:
            logger.error("Не удалось загрузить ког %s: %s", filename, e)

if __name__ == "__main__":
    bot.run(config.discord_token)
