import logging

import disnake
from disnake.ext import commands
from sqlalchemy.exc import IntegrityError

from database.crud import crud_template
from scheduling.enums import DEFAULT_CAPACITIES, ROLE_RULES, RosterKind, RosterRole, kind_of, roles_for

logger = logging.getLogger(__name__)

KIND_CHOICES = {
    "По ролям (танк/хил/дд/флекс)": RosterKind.ROLE_BASED.value,
    "Игроки и запас": RosterKind.GENERIC.value,
}


def parse_capacities(roles: str | None, kind: str | None = None) -> tuple[RosterKind, dict[RosterRole, int]]:
    """
    Разбирает строку вида 'tank:2|healer:4|dps:14'.
    Без строки берутся вместимости по умолчанию для выбранного типа ростера.
    """
    if not roles:
        roster_kind = RosterKind(kind or RosterKind.ROLE_BASED)
        return roster_kind, dict(DEFAULT_CAPACITIES[roster_kind])

    capacities: dict[RosterRole, int] = {}
    for chunk in roles.split("|"):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, _, count = chunk.partition(":")
        try:
            role = RosterRole(name.strip().lower())
        except ValueError:
            known = ", ".join(r.value for group in RosterKind for r in roles_for(group))
            raise ValueError(f"Неизвестная роль '{name.strip()}'. Доступные роли: {known}")
        try:
            capacity = int(count) if count.strip() else DEFAULT_CAPACITIES[ROLE_RULES[role].kind][role]
        except ValueError:
            raise ValueError(f"Вместимость роли '{role.value}' должна быть числом")
        if capacity < 1:
            raise ValueError(f"Вместимость роли '{role.value}' должна быть больше нуля")
        capacities[role] = capacity

    if not capacities:
        raise ValueError("Вы не указали ни одной роли!")
    roster_kind = kind_of(capacities)
    if kind and RosterKind(kind) is not roster_kind:
        raise ValueError("Роли не соответствуют выбранному типу ростера")
    return roster_kind, capacities


def format_capacities(capacities: dict) -> str:
    parts = []
    for role, capacity in sorted(capacities.items(), key=lambda item: ROLE_RULES[RosterRole(item[0])].order):
        rule = ROLE_RULES[RosterRole(role)]
        parts.append(f"{rule.emoji} {rule.label}: {capacity}")
    return ", ".join(parts)


# Функция для автодополнения
async def autocomplete_template_name(inter: disnake.ApplicationCommandInteraction, user_input: str):
    async with inter.bot.session_maker() as session:
        return list(await crud_template.search_template_names(session, inter.guild.id, user_input))


class TemplateCog(commands.Cog):
    def __init__(self, bot):
        self.bot = bot

    @commands.slash_command(name="template", description="Управление шаблонами ростеров")
    async def template(self, inter: disnake.ApplicationCommandInteraction):
        pass

    @template.sub_command(name="create", description="Создать новый шаблон")
    async def create(
        self,
        inter: disnake.ApplicationCommandInteraction,
        name: str = commands.Param(description="Название шаблона (например, 'Рейд 25ппл')"),
        kind: str = commands.Param(default=None, choices=KIND_CHOICES, description="Тип ростера"),
        roles: str = commands.Param(default=None, description="Роли с вместимостью через '|' (например, 'tank:2|healer:4|dps:14')"),
    ):
        await inter.response.defer(ephemeral=True)
        try:
            roster_kind, capacities = parse_capacities(roles, kind)
        except ValueError as e:
            await inter.followup.send(f"❌ {e}", ephemeral=True)
            return

        async with self.bot.session_maker() as session:
            try:
                await crud_template.create_template_with_roles(
                    session,
                    guild_id=inter.guild.id,
                    name=name,
                    roster_kind=roster_kind.value,
                    capacities={role.value: capacity for role, capacity in capacities.items()},
                )
            except IntegrityError:
                await inter.followup.send(
                    f"❌ Шаблон с именем **{name}** уже существует на этом сервере.", ephemeral=True
                )
                return

        logger.info("Template '%s' created in guild %s", name, inter.guild.id)
        await inter.followup.send(
            f"✅ Шаблон **{name}** успешно создан: {format_capacities(capacities)}", ephemeral=True
        )

    @template.sub_command(name="list", description="Показать все шаблоны на сервере")
    async def list(self, inter: disnake.ApplicationCommandInteraction):
        async with self.bot.session_maker() as session:
            templates = await crud_template.get_all_templates_for_guild(session, inter.guild.id)

        if not templates:
            await inter.response.send_message("На этом сервере еще нет ни одного шаблона.", ephemeral=True)
            return

        embed = disnake.Embed(
            title="📋 Шаблоны ростеров на этом сервере",
            color=disnake.Color.blurple()
        )
        for t in templates:
            value = format_capacities(t.capacities) if t.roles else "Нет ролей"
            embed.add_field(name=f"🔹 {t.name}", value=value, inline=False)

        await inter.response.send_message(embed=embed, ephemeral=True)

    @template.sub_command(name="delete", description="Удалить шаблон")
    async def delete(
        self,
        inter: disnake.ApplicationCommandInteraction,
        name: str = commands.Param(description="Название шаблона для удаления", autocomplete=autocomplete_template_name)
    ):
        async with self.bot.session_maker() as session:
            success = await crud_template.delete_template(session, inter.guild.id, name)

        if success:
            await inter.response.send_message(f"🗑️ Шаблон **{name}** был удален.", ephemeral=True)
        else:
            await inter.response.send_message(f"❓ Не удалось найти шаблон **{name}**.", ephemeral=True)


def setup(bot):
    bot.add_cog(TemplateCog(bot))
