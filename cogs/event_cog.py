import datetime
import logging
import re

import disnake
from disnake.ext import commands

from database.crud import crud_event, crud_template, crud_user
from database.models import BotRole, Event
from database.stores import SqlAvailabilityStore, SqlEventStore, SqlRosterStore
from scheduling.enums import ROLE_RULES, RosterKind, RosterRole
from scheduling.errors import (
    AlreadyJoinedError,
    AssignmentNotFoundError,
    EventNotFoundError,
    RosterFullError,
)
from scheduling.overlap import EventBlock, partition_by_availability
from scheduling.preferences import ViewMode
from scheduling.roster import RosterAssignmentEngine, RosterSnapshot
from scheduling.rolling_week import RollingWeekProjector, week_start_for
from .template_cog import KIND_CHOICES, autocomplete_template_name, format_capacities, parse_capacities

logger = logging.getLogger(__name__)

DAY_NAMES = ["Пн", "Вт", "Ср", "Чт", "Пт", "Сб", "Вс"]

JOIN_PREFIX = "roster:join"
LEAVE_PREFIX = "roster:leave"

# --- Вспомогательные функции ---

def parse_datetime(datetime_str: str, tz: datetime.tzinfo, now: datetime.datetime | None = None) -> int | None:
    """Парсит дату и время из строки в Unix timestamp в часовом поясе tz."""
    datetime_str = datetime_str.strip()
    now = now or datetime.datetime.now(tz)

    try:
        # "ЧЧ:ММ ДД.ММ": ближайшая такая дата в будущем
        if re.match(r"^\d{2}:\d{2}\s\d{2}\.\d{2}$", datetime_str):
            dt_obj = datetime.datetime.strptime(datetime_str, "%H:%M %d.%m")
            dt_obj = dt_obj.replace(year=now.year, tzinfo=tz)
            if dt_obj < now:
                dt_obj = dt_obj.replace(year=now.year + 1)
        # "ЧЧ:ММ ДД.ММ.ГГГГ"
        elif re.match(r"^\d{2}:\d{2}\s\d{2}\.\d{2}\.\d{4}$", datetime_str):
            dt_obj = datetime.datetime.strptime(datetime_str, "%H:%M %d.%m.%Y").replace(tzinfo=tz)
        else:
            return None

        return int(dt_obj.timestamp())
    except ValueError:
        return None


def parse_date(date_str: str, today: datetime.date) -> datetime.date | None:
    """Дата из 'ДД.ММ' (ближайшая, не раньше today) или 'ДД.ММ.ГГГГ'."""
    date_str = date_str.strip()
    try:
        if re.match(r"^\d{2}\.\d{2}$", date_str):
            parsed = datetime.datetime.strptime(f"{date_str}.{today.year}", "%d.%m.%Y").date()
            if parsed < today:
                parsed = parsed.replace(year=today.year + 1)
            return parsed
        if re.match(r"^\d{2}\.\d{2}\.\d{4}$", date_str):
            return datetime.datetime.strptime(date_str, "%d.%m.%Y").date()
    except ValueError:
        return None
    return None


def format_hour(value: float) -> str:
    hours = int(value)
    minutes = round((value - hours) * 60)
    return f"{hours:02d}:{minutes:02d}"


def format_block(block: EventBlock) -> str:
    title = block.metadata.get("title", f"Событие #{block.event_id}")
    return (f"`#{block.event_id}` **{title}**: {DAY_NAMES[block.day_of_week]} "
            f"{format_hour(block.start_hour)}-{format_hour(block.end_hour)}")


def format_roster_embed(event: Event, snapshot: RosterSnapshot) -> disnake.Embed:
    """Создает и форматирует Embed ростера события."""
    embed = disnake.Embed(
        title=f"📅 {event.title}",
        description=event.description,
        color=disnake.Color.green()
    )
    embed.add_field(
        name="Время проведения",
        value=f"<t:{event.event_timestamp}:F> (<t:{event.event_timestamp}:R>), "
              f"{event.duration_minutes} мин.",
        inline=False
    )
    embed.add_field(name="Организатор", value=f"<@{event.owner_id}>", inline=False)

    for role in snapshot.roles():
        rule = ROLE_RULES[role]
        capacity = snapshot.capacities[role]
        taken = {a.position: a for a in snapshot.by_role(role)}
        lines = []
        for position in range(1, capacity + 1):
            assignment = taken.get(position)
            user_mention = f"<@{assignment.user_id}>" if assignment else "**[Свободно]**"
            lines.append(f"`{position}.` {user_mention}")
        embed.add_field(
            name=f"{rule.emoji} {rule.label} ({len(taken)}/{capacity})",
            value="\n".join(lines),
            inline=True
        )

    embed.set_footer(text=f"ID события: {event.id}")
    return embed


def build_roster_components(snapshot: RosterSnapshot) -> list[disnake.ui.Button]:
    """Кнопки записи по ролям; кнопка заполненной роли неактивна."""
    buttons = []
    for role in snapshot.roles():
        rule = ROLE_RULES[role]
        buttons.append(disnake.ui.Button(
            label=rule.label,
            emoji=rule.emoji,
            style=disnake.ButtonStyle.success,
            custom_id=f"{JOIN_PREFIX}:{snapshot.event_id}:{role.value}",
            disabled=snapshot.is_full(role),
        ))
    buttons.append(disnake.ui.Button(
        label="Выйти",
        style=disnake.ButtonStyle.danger,
        custom_id=f"{LEAVE_PREFIX}:{snapshot.event_id}",
    ))
    return buttons


def parse_roster_custom_id(custom_id: str) -> tuple[str, int, RosterRole | None] | None:
    """Разбирает custom_id кнопки ростера: (действие, ID события, роль)."""
    parts = custom_id.split(":")
    if len(parts) < 3 or parts[0] != "roster":
        return None
    try:
        event_id = int(parts[2])
        role = RosterRole(parts[3]) if parts[1] == "join" and len(parts) > 3 else None
    except ValueError:
        return None
    if parts[1] not in ("join", "leave"):
        return None
    return parts[1], event_id, role

# --- Основной ког ---

class EventCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.roster_store = SqlRosterStore(bot.session_maker)
        self.event_store = SqlEventStore(bot.session_maker)
        self.availability_store = SqlAvailabilityStore(bot.session_maker)
        self.engine = RosterAssignmentEngine(self.roster_store, max_attempts=bot.config.join_max_attempts)

    async def refresh_roster_message(self, event_id: int) -> None:
        """Перерисовывает сообщение ростера после изменения состава."""
        async with self.bot.session_maker() as session:
            event = await crud_event.get_event_by_id(session, event_id)
        if not event or not event.message_id:
            return
        snapshot = await self.roster_store.fetch_roster(event_id)
        try:
            channel = self.bot.get_channel(event.channel_id) or await self.bot.fetch_channel(event.channel_id)
            message = await channel.fetch_message(event.message_id)
            await message.edit(
                embed=format_roster_embed(event, snapshot),
                components=build_roster_components(snapshot),
            )
        except (disnake.NotFound, disnake.Forbidden) as e:
            logger.warning("Не удалось обновить сообщение для события %s: %s", event_id, e)

    @commands.slash_command(name="event", description="Команды для управления событиями")
    async def event(self, inter: disnake.ApplicationCommandInteraction):
        pass

    @event.sub_command(name="create", description="Создать новое событие с ростером")
    async def create(
        self,
        inter: disnake.ApplicationCommandInteraction,
        title: str = commands.Param(description="Название события"),
        date_time: str = commands.Param(description="Время и дата в формате 'ЧЧ:ММ ДД.ММ' или 'ЧЧ:ММ ДД.ММ.ГГГГ'"),
        description: str = commands.Param(default=None, description="Описание события"),
        duration: int = commands.Param(default=120, ge=15, le=24 * 60, description="Длительность в минутах"),
        kind: str = commands.Param(default=None, choices=KIND_CHOICES, description="Тип ростера"),
        template: str = commands.Param(default=None, description="Использовать готовый шаблон ростера", autocomplete=autocomplete_template_name),
        roles: str = commands.Param(default=None, description="Роли с вместимостью через '|', если не используется шаблон")
    ):
        await inter.response.defer(ephemeral=True)
        if template and roles:
            await inter.followup.send("Нельзя одновременно использовать и шаблон, и ручной ввод ролей.", ephemeral=True)
            return

        preferences = await self.bot.preferences.load(inter.author.id)
        timestamp = parse_datetime(date_time, preferences.tzinfo)
        if not timestamp:
            await inter.followup.send("Неверный формат времени и даты. Используйте 'ЧЧ:ММ ДД.ММ' или 'ЧЧ:ММ ДД.ММ.ГГГГ'.", ephemeral=True)
            return

        async with self.bot.session_maker() as session:
            user = await crud_user.get_or_create_user(session, inter.author.id, inter.author.name)
            if not user.can_create_events:
                await inter.followup.send("У вас нет прав для создания событий.", ephemeral=True)
                return

            if template:
                db_template = await crud_template.get_template_by_name(session, inter.guild.id, template)
                if not db_template:
                    await inter.followup.send(f"Шаблон '{template}' не найден.", ephemeral=True)
                    return
                roster_kind = RosterKind(db_template.roster_kind)
                capacities = {RosterRole(role): capacity for role, capacity in db_template.capacities.items()}
            else:
                try:
                    roster_kind, capacities = parse_capacities(roles, kind)
                except ValueError as e:
                    await inter.followup.send(f"❌ {e}", ephemeral=True)
                    return

            new_event = await crud_event.create_event_with_roles(
                session, owner_id=inter.author.id, guild_id=inter.guild.id, title=title,
                description=description, event_timestamp=timestamp, duration_minutes=duration,
                roster_kind=roster_kind.value,
                capacities={role.value: capacity for role, capacity in capacities.items()},
            )

            snapshot = await self.roster_store.fetch_roster(new_event.id)
            msg = await inter.channel.send(
                embed=format_roster_embed(new_event, snapshot),
                components=build_roster_components(snapshot),
            )
            await crud_event.update_event_message_info(session, new_event.id, msg.id, inter.channel.id)

        logger.info("Event %s created by %s: %s", new_event.id, inter.author.id, format_capacities(capacities))
        await inter.followup.send(f"Событие '{title}' успешно создано!", ephemeral=True)

    @event.sub_command(name="roster", description="Показать ростер события в этом канале")
    async def roster(
        self,
        inter: disnake.ApplicationCommandInteraction,
        event_id: int = commands.Param(description="ID события"),
    ):
        async with self.bot.session_maker() as session:
            event = await crud_event.get_event_by_id(session, event_id)
            if not event:
                await inter.response.send_message("Не удалось найти это событие. Возможно, оно было удалено.", ephemeral=True)
                return
            snapshot = await self.roster_store.fetch_roster(event_id)
            await inter.response.send_message(
                embed=format_roster_embed(event, snapshot),
                components=build_roster_components(snapshot),
            )
            msg = await inter.original_response()
            await crud_event.update_event_message_info(session, event_id, msg.id, inter.channel.id)

    @event.sub_command(name="cancel", description="Отменить событие и все записи на него")
    async def cancel(
        self,
        inter: disnake.ApplicationCommandInteraction,
        event_id: int = commands.Param(description="ID события"),
    ):
        await inter.response.defer(ephemeral=True)
        async with self.bot.session_maker() as session:
            event = await crud_event.get_event_by_id(session, event_id)
            if not event:
                await inter.followup.send("Не удалось найти это событие.", ephemeral=True)
                return
            user = await crud_user.get_or_create_user(session, inter.author.id, inter.author.name)
            if event.owner_id != inter.author.id and user.bot_role != BotRole.ADMIN:
                await inter.followup.send("Отменить событие может только его организатор.", ephemeral=True)
                return
            channel_id, message_id, title = event.channel_id, event.message_id, event.title
            await crud_event.cancel_event(session, event_id)

        logger.info("Event %s cancelled by %s", event_id, inter.author.id)
        if channel_id and message_id:
            try:
                channel = self.bot.get_channel(channel_id) or await self.bot.fetch_channel(channel_id)
                message = await channel.fetch_message(message_id)
                await message.edit(content=f"❌ Событие **{title}** отменено.", embed=None, components=[])
            except (disnake.NotFound, disnake.Forbidden) as e:
                logger.warning("Не удалось обновить сообщение отмененного события %s: %s", event_id, e)
        await inter.followup.send(f"Событие '{title}' отменено.", ephemeral=True)

    @event.sub_command(name="match", description="События недели: сначала те, что попадают в ваше свободное время")
    async def match(self, inter: disnake.ApplicationCommandInteraction):
        await inter.response.defer(ephemeral=True)
        preferences = await self.bot.preferences.load(inter.author.id)
        now = datetime.datetime.now(preferences.tzinfo)
        week_start = week_start_for(now)

        grid = await self.availability_store.fetch_week_grid(inter.author.id, week_start)
        events = await self.event_store.fetch_events(week_start, inter.guild.id)
        if preferences.view_mode is ViewMode.ROLLING:
            next_start = week_start + datetime.timedelta(days=7)
            projector = RollingWeekProjector.from_datetime(
                now, next_period=await self.availability_store.fetch_week_grid(inter.author.id, next_start)
            )
            events = projector.project_events(events, await self.event_store.fetch_events(next_start, inter.guild.id))
            grid = projector.project(grid)

        if not events:
            await inter.followup.send("На этой неделе событий нет.", ephemeral=True)
            return

        matching, other = partition_by_availability(events, grid)
        embed = disnake.Embed(title="🗓️ События недели", color=disnake.Color.blurple())
        embed.add_field(
            name="✅ В ваше свободное время",
            value="\n".join(format_block(b) for b in matching) or "Нет совпадений.",
            inline=False,
        )
        if other:
            embed.add_field(name="Остальные", value="\n".join(format_block(b) for b in other), inline=False)
        embed.set_footer(text=f"Часовой пояс: {preferences.timezone}")
        await inter.followup.send(embed=embed, ephemeral=True)

    @commands.Cog.listener("on_button_click")
    async def on_roster_button(self, inter: disnake.MessageInteraction):
        parsed = parse_roster_custom_id(inter.component.custom_id or "")
        if parsed is None:
            return
        action, event_id, role = parsed
        await inter.response.defer(ephemeral=True)

        try:
            if action == "join":
                async with self.bot.session_maker() as session:
                    await crud_user.get_or_create_user(session, inter.author.id, inter.author.name)
                assignment = await self.engine.join(event_id, inter.author.id, role)
                rule = ROLE_RULES[assignment.role]
                text = f"✅ Вы записаны: {rule.emoji} {rule.label}, место {assignment.position}."
                if assignment.role is not role:
                    text += " Основной состав заполнен, вы записаны в запас."
            else:
                removed = await self.engine.leave(event_id, inter.author.id)
                text = f"Вы покинули ростер (роль {ROLE_RULES[removed.role].label})."
        except AlreadyJoinedError:
            await inter.followup.send("Вы уже записаны на это событие. Сначала выйдите из ростера.", ephemeral=True)
            return
        except RosterFullError:
            await inter.followup.send("❌ Свободных мест нет.", ephemeral=True)
            return
        except AssignmentNotFoundError:
            await inter.followup.send("Вы не записаны на это событие.", ephemeral=True)
            return
        except EventNotFoundError:
            await inter.followup.send("Не удалось найти это событие. Возможно, оно было удалено.", ephemeral=True)
            return
        except ValueError as e:
            await inter.followup.send(f"❌ {e}", ephemeral=True)
            return

        await inter.followup.send(text, ephemeral=True)
        await self.refresh_roster_message(event_id)


def setup(bot: commands.Bot):
    bot.add_cog(EventCog(bot))
