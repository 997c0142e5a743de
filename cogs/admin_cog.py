import logging

import disnake
from disnake.ext import commands

from database.models import BotRole
from database.crud.crud_availability import block_cell
from database.crud.crud_user import get_or_create_user, set_user_role
from .availability_cog import DAY_CHOICES

logger = logging.getLogger(__name__)


class AdminCog(commands.Cog):
    def __init__(self, bot):
        self.bot = bot

    @commands.slash_command(
        name="admin",
        description="Административные команды"
    )
    @commands.is_owner() # Только владелец бота может использовать эти команды
    async def admin(self, inter: disnake.ApplicationCommandInteraction):
        pass

    @admin.sub_command(name="setrole", description="Установить роль пользователю")
    async def set_role(
        self,
        inter: disnake.ApplicationCommandInteraction,
        user: disnake.User,
        role: str = commands.Param(choices=list(BotRole.ALL))
    ):
        async with self.bot.session_maker() as session:
            db_user = await get_or_create_user(session, user_id=user.id, username=user.name)
            await set_user_role(session, db_user, role)

        logger.info("Bot role of %s set to %s by %s", user.id, role, inter.author.id)
        await inter.response.send_message(
            f"Пользователю {user.mention} была присвоена роль `{role}`.",
            ephemeral=True
        )

    @admin.sub_command(name="block", description="Закрыть час в сетке пользователя")
    async def block(
        self,
        inter: disnake.ApplicationCommandInteraction,
        user: disnake.User,
        day: int = commands.Param(choices=DAY_CHOICES, description="День недели"),
        hour: int = commands.Param(ge=0, le=23, description="Час"),
    ):
        async with self.bot.session_maker() as session:
            await block_cell(session, user.id, day, hour)

        logger.info("Cell (%s, %s) of %s blocked by %s", day, hour, user.id, inter.author.id)
        await inter.response.send_message(
            f"Час `{hour:02d}:00` закрыт в сетке {user.mention}: изменить его сам пользователь не сможет.",
            ephemeral=True
        )


def setup(bot):
    bot.add_cog(AdminCog(bot))
