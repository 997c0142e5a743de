"""
Сохранение правок сетки и чтение данных с деградацией до кэша.

AvailabilitySync применяет правки оптимистично: сетка меняется сразу, запись
в хранилище откладывается (debounce). Если запись не удалась, ячейка
возвращается в последнее подтверждённое состояние. После close() никаких
записей больше не выполняется.
"""
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar

from .enums import SlotStatus
from .errors import AvailabilitySaveError, LockedError
from .paint import CellEdit
from .slot_grid import CellKey, SlotGrid

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_ENTRIES = 32


class AvailabilityStore(Protocol):
    async def save_availability_edit(
        self, owner_id: int, day: int, hour: int, status: SlotStatus | None
    ) -> None: ...


class AvailabilitySync:
    def __init__(
        self,
        grid: SlotGrid,
        store: AvailabilityStore,
        debounce_seconds: float = 1.5,
        on_error: Callable[[AvailabilitySaveError], Any] | None = None,
    ):
        self.grid = grid
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.on_error = on_error
        self._confirmed: dict[CellKey, SlotStatus | None] = {}
        self._pending: dict[CellKey, SlotStatus | None] = {}
        self._task: asyncio.Task | None = None
        self._flushing = False
        self._closed = False

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def record(self, edit: CellEdit) -> None:
        """Принимает правку от контроллера рисования (on_edit)."""
        if self._closed:
            return
        self._confirmed.setdefault(edit.key, edit.before)
        self._pending[edit.key] = edit.after
        self._schedule()

    def _schedule(self) -> None:
        if self._flushing:
            # flush() сам перезапланирует оставшиеся правки
            return
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._flush_later())

    async def _flush_later(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self.flush()

    async def flush(self) -> list[AvailabilitySaveError]:
        failures: list[AvailabilitySaveError] = []
        pending, self._pending = self._pending, {}
        self._flushing = True
        try:
            for (day, hour), status in pending.items():
                if self._closed:
                    break
                confirmed = self._confirmed.pop((day, hour), None)
                if status == confirmed:
                    continue
                try:
                    await self.store.save_availability_edit(self.grid.owner_id, day, hour, status)
                except Exception as exc:
                    logger.warning("Availability save failed for owner %s at (%s, %s): %s",
                                   self.grid.owner_id, day, hour, exc)
                    self._revert(day, hour, confirmed)
                    error = AvailabilitySaveError(day, hour, exc)
                    failures.append(error)
                    if self.on_error is not None:
                        self.on_error(error)
        finally:
            self._flushing = False

        if self._pending and not self._closed:
            self._schedule()
        return failures

    def _revert(self, day: int, hour: int, status: SlotStatus | None) -> None:
        try:
            if status is None:
                self.grid.remove(day, hour)
            else:
                self.grid.upsert(day, hour, status)
        except LockedError:
            # Ячейку уже заняло событие, откатывать нечего
            logger.debug("Skip revert of locked cell (%s, %s)", day, hour)

    def close(self) -> None:
        """Отменяет отложенную запись. Несохранённые правки отбрасываются."""
        self._closed = True
        self._pending.clear()
        self._confirmed.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    value: T
    stale: bool
    fetched_at: datetime


class CachedFetch(Generic[T]):
    """
    Обёртка над асинхронной загрузкой: при ошибке или таймауте возвращает
    последнее успешно загруженное значение с пометкой stale. Если значения
    в кэше нет, ошибка пробрасывается.

    Кэш хранит не больше max_entries наборов аргументов, давно не
    запрашивавшиеся вытесняются первыми.
    """

    def __init__(self, fetch: Callable[..., Awaitable[T]], timeout_seconds: float = 5.0,
                 max_entries: int = DEFAULT_CACHE_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._fetch = fetch
        self.timeout_seconds = timeout_seconds
        self.max_entries = max_entries
        self._cache: OrderedDict[tuple, tuple[T, datetime]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, *args) -> FetchResult[T]:
        try:
            value = await asyncio.wait_for(self._fetch(*args), self.timeout_seconds)
        except Exception as exc:
            cached = self._cache.get(args)
            if cached is None:
                raise
            self._cache.move_to_end(args)
            logger.warning("Fetch %s failed (%s), serving cached data from %s",
                           args, exc.__class__.__name__, cached[1].isoformat())
            return FetchResult(cached[0], stale=True, fetched_at=cached[1])

        fetched_at = datetime.now(timezone.utc)
        self._cache[args] = (value, fetched_at)
        self._cache.move_to_end(args)
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)
        return FetchResult(value, stale=False, fetched_at=fetched_at)
