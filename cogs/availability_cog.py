import datetime
import logging
import math

import disnake
from disnake.ext import commands

from database.crud import crud_absence, crud_availability
from database.stores import SqlAvailabilityStore, SqlRosterStore
from scheduling.enums import STATUS_RULES, SlotStatus
from scheduling.errors import AvailabilitySaveError
from scheduling.heatmap import AVAILABILITY, COMMITMENT, PRESENCE, HeatmapCell, aggregate, peak_cells
from scheduling.paint import PaintInteractionController
from scheduling.preferences import Preferences, ViewMode
from scheduling.rolling_week import RollingWeekProjector, week_start_for
from scheduling.slot_grid import DAYS_IN_WEEK, HOURS_IN_DAY, SlotGrid
from scheduling.sync import AvailabilitySync, CachedFetch
from .event_cog import DAY_NAMES, parse_date

logger = logging.getLogger(__name__)

DAY_CHOICES = {
    "Понедельник": 0, "Вторник": 1, "Среда": 2, "Четверг": 3,
    "Пятница": 4, "Суббота": 5, "Воскресенье": 6,
}
VIEW_MODE_CHOICES = {
    "Календарная неделя": ViewMode.WEEK.value,
    "Скользящая неделя (7 дней вперед)": ViewMode.ROLLING.value,
}
MEASURES = {"availability": AVAILABILITY, "presence": PRESENCE, "commitment": COMMITMENT}
MEASURE_CHOICES = {
    "Свободны": "availability",
    "Отметили любой статус": "presence",
    "Заняты событиями": "commitment",
}
EMPTY_SYMBOL = "·"
HEAT_SHADES = "░▒▓█"
OVERRIDE_CHOICES = {
    "Свободен в этот час": SlotStatus.AVAILABLE.value,
    "Занят в этот час": SlotStatus.BLOCKED.value,
    "Вернуть как в шаблоне": "clear",
}


def grid_header() -> str:
    return "   " + " ".join(f"{name:<2}" for name in DAY_NAMES)


def render_week_grid(grid: SlotGrid) -> str:
    """Текстовая сетка недели: по строкам часы, по столбцам дни."""
    lines = [grid_header()]
    for hour in range(HOURS_IN_DAY):
        row = []
        for day in range(DAYS_IN_WEEK):
            status = grid.get(day, hour)
            row.append(STATUS_RULES[status].symbol if status else EMPTY_SYMBOL)
        lines.append(f"{hour:02d} " + " ".join(f"{symbol:<2}" for symbol in row))
    return "```\n" + "\n".join(lines) + "\n```"


def render_legend() -> str:
    return " ".join(f"`{rule.symbol}` {rule.label}" for rule in STATUS_RULES.values())


def heat_symbol(cell: HeatmapCell) -> str:
    if not cell.available_count:
        return EMPTY_SYMBOL
    index = max(math.ceil(cell.intensity * len(HEAT_SHADES)) - 1, 0)
    return HEAT_SHADES[index]


def render_heatmap(cells: list[HeatmapCell]) -> str:
    by_key = {(c.day_of_week, c.hour): c for c in cells}
    lines = [grid_header()]
    for hour in range(HOURS_IN_DAY):
        row = [heat_symbol(by_key[(day, hour)]) for day in range(DAYS_IN_WEEK)]
        lines.append(f"{hour:02d} " + " ".join(f"{symbol:<2}" for symbol in row))
    return "```\n" + "\n".join(lines) + "\n```"


def heatmap_population(grids: list[SlotGrid], roster_scope: bool) -> list[SlotGrid]:
    """
    Сетки, по которым строится тепловая карта. В ростере учитывается каждый
    записавшийся, даже без отмеченного времени; по серверу только те, кто
    хоть что-то отметил.
    """
    if roster_scope:
        return list(grids)
    return [g for g in grids if len(g)]


class AvailabilityCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.store = SqlAvailabilityStore(bot.session_maker)
        self.roster_store = SqlRosterStore(bot.session_maker)
        timeout = bot.config.fetch_timeout_seconds
        self.roster_heatmap = CachedFetch(self.roster_store.fetch_roster_availability, timeout)
        self.guild_heatmap = CachedFetch(self.store.fetch_week_grids, timeout)

    async def load_view(self, user_id: int, preferences: Preferences) -> tuple[SlotGrid, RollingWeekProjector | None]:
        """Сетка пользователя на текущую неделю и проектор для скользящего режима."""
        now = datetime.datetime.now(preferences.tzinfo)
        week_start = week_start_for(now)
        grid = await self.store.fetch_week_grid(user_id, week_start)
        if preferences.view_mode is not ViewMode.ROLLING:
            return grid, None
        next_grid = await self.store.fetch_week_grid(user_id, week_start + datetime.timedelta(days=7))
        return grid, RollingWeekProjector.from_datetime(now, next_period=next_grid)

    def grid_embed(self, title: str, grid: SlotGrid, projector: RollingWeekProjector | None,
                   preferences: Preferences) -> disnake.Embed:
        shown = projector.project(grid) if projector else grid
        embed = disnake.Embed(title=title, description=render_week_grid(shown), color=disnake.Color.blurple())
        embed.add_field(name="Обозначения", value=render_legend(), inline=False)
        mode = "скользящая неделя" if projector else "календарная неделя"
        embed.set_footer(text=f"{mode} | {preferences.timezone}")
        return embed

    @commands.slash_command(name="availability", description="Ваше свободное время по часам недели")
    async def availability(self, inter: disnake.ApplicationCommandInteraction):
        pass

    @availability.sub_command(name="show", description="Показать вашу сетку доступности")
    async def show(
        self,
        inter: disnake.ApplicationCommandInteraction,
        user: disnake.User = commands.Param(default=None, description="Чью сетку показать"),
    ):
        await inter.response.defer(ephemeral=True)
        target = user or inter.author
        preferences = await self.bot.preferences.load(inter.author.id)
        grid, projector = await self.load_view(target.id, preferences)
        embed = self.grid_embed(f"🕒 Доступность {target.display_name}", grid, projector, preferences)
        await inter.followup.send(embed=embed, ephemeral=True)

    @availability.sub_command(name="paint", description="Отметить или стереть часы одного дня")
    async def paint(
        self,
        inter: disnake.ApplicationCommandInteraction,
        day: int = commands.Param(choices=DAY_CHOICES, description="День недели"),
        start_hour: int = commands.Param(ge=0, le=23, description="С какого часа"),
        end_hour: int = commands.Param(ge=1, le=24, description="До какого часа (не включая)"),
    ):
        """
        Протягивание по часам дня через конечный автомат рисования: если первый
        час уже свободен, диапазон стирается, иначе закрашивается.
        """
        if end_hour <= start_hour:
            await inter.response.send_message("Конец диапазона должен быть позже начала.", ephemeral=True)
            return
        await inter.response.defer(ephemeral=True)

        preferences = await self.bot.preferences.load(inter.author.id)
        grid, projector = await self.load_view(inter.author.id, preferences)
        errors: list[AvailabilitySaveError] = []
        sync = AvailabilitySync(
            grid, self.store, debounce_seconds=self.bot.config.save_debounce_seconds, on_error=errors.append
        )
        controller = PaintInteractionController(grid, projector, on_edit=sync.record)
        try:
            edits = controller.drag([(day, hour) for hour in range(start_hour, end_hour)])
            await sync.flush()
        finally:
            sync.close()

        if not edits:
            text = "Ничего не изменилось: выбранные часы заняты событиями или уже в нужном состоянии."
        else:
            action = "стерто" if edits[0].after is None else "отмечено"
            text = f"✅ {action.capitalize()} часов: {len(edits) - len(errors)}."
        if errors:
            hours = ", ".join(f"{e.hour:02d}:00" for e in errors)
            text += f"\n⚠️ Не удалось сохранить: {hours}. Эти часы возвращены в прежнее состояние."
            logger.warning("User %s: %s availability edits failed", inter.author.id, len(errors))

        embed = self.grid_embed("🕒 Ваша доступность", grid, projector, preferences)
        await inter.followup.send(text, embed=embed, ephemeral=True)

    @availability.sub_command(name="heatmap", description="Тепловая карта доступности участников")
    async def heatmap(
        self,
        inter: disnake.ApplicationCommandInteraction,
        event_id: int = commands.Param(default=None, description="ID события: только записавшиеся на него"),
        measure: str = commands.Param(default="availability", choices=MEASURE_CHOICES, description="Что считать"),
    ):
        await inter.response.defer(ephemeral=True)
        preferences = await self.bot.preferences.load(inter.author.id)
        week_start = week_start_for(datetime.datetime.now(preferences.tzinfo))

        try:
            if event_id is not None:
                result = await self.roster_heatmap.get(event_id, week_start)
                scope = f"ростер события #{event_id}"
            else:
                member_ids = tuple(sorted(m.id for m in inter.guild.members if not m.bot))
                result = await self.guild_heatmap.get(member_ids, week_start)
                scope = "участники сервера"
        except Exception as e:
            logger.error("Heatmap fetch failed for %s: %s", inter.author.id, e)
            await inter.followup.send("❌ Не удалось загрузить данные. Попробуйте позже.", ephemeral=True)
            return

        grids = heatmap_population(result.value, roster_scope=event_id is not None)
        if not grids:
            if event_id is not None:
                empty = "На это событие еще никто не записан."
            else:
                empty = "Никто еще не отметил свое свободное время."
            await inter.followup.send(empty, ephemeral=True)
            return

        cells = aggregate(grids, counted=MEASURES[measure])
        embed = disnake.Embed(
            title=f"🔥 Тепловая карта: {scope}",
            description=render_heatmap(cells),
            color=disnake.Color.orange(),
        )
        peaks = peak_cells(cells)
        if peaks:
            embed.add_field(
                name="Лучшее время",
                value="\n".join(
                    f"{DAY_NAMES[c.day_of_week]} {c.hour:02d}:00: {c.available_count}/{c.total_count}"
                    for c in peaks
                ),
                inline=False,
            )
        footer = f"Участников: {len(grids)} | {preferences.timezone}"
        if result.stale:
            footer += f" | ⚠️ данные от {result.fetched_at:%H:%M:%S} UTC"
        embed.set_footer(text=footer)
        await inter.followup.send(embed=embed, ephemeral=True)

    @availability.sub_command(name="settings", description="Режим недели и часовой пояс")
    async def settings(
        self,
        inter: disnake.ApplicationCommandInteraction,
        view_mode: str = commands.Param(default=None, choices=VIEW_MODE_CHOICES, description="Режим отображения"),
        timezone: str = commands.Param(default=None, description="Часовой пояс IANA, например Europe/Moscow"),
    ):
        try:
            preferences = await self.bot.preferences.save(inter.author.id, view_mode=view_mode, timezone=timezone)
        except ValueError:
            await inter.response.send_message(f"❌ Неизвестный часовой пояс: `{timezone}`.", ephemeral=True)
            return
        mode = "скользящая неделя" if preferences.view_mode is ViewMode.ROLLING else "календарная неделя"
        await inter.response.send_message(
            f"⚙️ Настройки сохранены: {mode}, часовой пояс `{preferences.timezone}`.", ephemeral=True
        )

    @availability.sub_command(name="override", description="Разовая правка часа на конкретную дату")
    async def override(
        self,
        inter: disnake.ApplicationCommandInteraction,
        date: str = commands.Param(description="Дата: ДД.ММ или ДД.ММ.ГГГГ"),
        hour: int = commands.Param(ge=0, le=23, description="Час"),
        status: str = commands.Param(choices=OVERRIDE_CHOICES, description="Что отметить"),
    ):
        preferences = await self.bot.preferences.load(inter.author.id)
        on_date = parse_date(date, datetime.datetime.now(preferences.tzinfo).date())
        if on_date is None:
            await inter.response.send_message("Неверный формат даты! Используйте `ДД.ММ` или `ДД.ММ.ГГГГ`.", ephemeral=True)
            return

        async with self.bot.session_maker() as session:
            await crud_availability.set_override(
                session, inter.author.id, on_date, hour, None if status == "clear" else status
            )

        logger.info("User %s set override %s %02d:00 -> %s", inter.author.id, on_date, hour, status)
        label = "как в шаблоне" if status == "clear" else STATUS_RULES[SlotStatus(status)].label
        await inter.response.send_message(f"✅ {on_date:%d.%m.%Y} {hour:02d}:00: {label}.", ephemeral=True)

    @availability.sub_command_group(name="absence", description="Периоды отсутствия")
    async def absence(self, inter: disnake.ApplicationCommandInteraction):
        pass

    @absence.sub_command(name="add", description="Отметить период, когда вас не будет")
    async def absence_add(
        self,
        inter: disnake.ApplicationCommandInteraction,
        start: str = commands.Param(description="Первый день: ДД.ММ или ДД.ММ.ГГГГ"),
        end: str = commands.Param(default=None, description="Последний день (по умолчанию равен первому)"),
        reason: str = commands.Param(default=None, description="Причина"),
    ):
        preferences = await self.bot.preferences.load(inter.author.id)
        today = datetime.datetime.now(preferences.tzinfo).date()
        start_date = parse_date(start, today)
        end_date = parse_date(end, start_date or today) if end else start_date
        if start_date is None or end_date is None:
            await inter.response.send_message("Неверный формат даты! Используйте `ДД.ММ` или `ДД.ММ.ГГГГ`.", ephemeral=True)
            return

        async with self.bot.session_maker() as session:
            try:
                absence = await crud_absence.create_absence(session, inter.author.id, start_date, end_date, reason)
            except ValueError as e:
                await inter.response.send_message(f"❌ {e}", ephemeral=True)
                return

        logger.info("User %s added absence #%s (%s..%s)", inter.author.id, absence.id, start_date, end_date)
        await inter.response.send_message(
            f"🏖️ Отсутствие `#{absence.id}` с {start_date:%d.%m.%Y} по {end_date:%d.%m.%Y} сохранено. "
            f"Все часы этих дней закрыты.",
            ephemeral=True,
        )

    @absence.sub_command(name="list", description="Ваши периоды отсутствия")
    async def absence_list(self, inter: disnake.ApplicationCommandInteraction):
        async with self.bot.session_maker() as session:
            absences = await crud_absence.get_absences(session, inter.author.id)

        if not absences:
            await inter.response.send_message("У вас нет отмеченных отсутствий.", ephemeral=True)
            return
        lines = [
            f"`#{a.id}` {a.start_date:%d.%m.%Y} - {a.end_date:%d.%m.%Y}" + (f": {a.reason}" if a.reason else "")
            for a in absences
        ]
        embed = disnake.Embed(title="🏖️ Периоды отсутствия", description="\n".join(lines), color=disnake.Color.blurple())
        await inter.response.send_message(embed=embed, ephemeral=True)

    @absence.sub_command(name="remove", description="Удалить период отсутствия")
    async def absence_remove(
        self,
        inter: disnake.ApplicationCommandInteraction,
        absence_id: int = commands.Param(description="ID из /availability absence list"),
    ):
        async with self.bot.session_maker() as session:
            removed = await crud_absence.delete_absence(session, inter.author.id, absence_id)

        if removed:
            await inter.response.send_message(f"🗑️ Отсутствие `#{absence_id}` удалено.", ephemeral=True)
        else:
            await inter.response.send_message(f"❓ Не удалось найти отсутствие `#{absence_id}`.", ephemeral=True)


def setup(bot: commands.Bot):
    bot.add_cog(AvailabilityCog(bot))
