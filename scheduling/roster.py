"""
Распределение записавшихся по позициям ростера с учётом вместимости ролей.

Проверка свободной позиции на клиенте носит рекомендательный характер:
окончательное решение принимает хранилище (уникальность
(event_id, role, position) и (event_id, user_id)). При конфликте ростер
перечитывается и поиск позиции повторяется ограниченное число раз.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .enums import (
    PRIMARY_POOL,
    SECONDARY_POOL,
    ROLE_RULES,
    RosterKind,
    RosterRole,
)
from .errors import AlreadyJoinedError, PositionConflictError, RosterFullError, SignupNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class RosterAssignment:
    signup_id: int
    user_id: int
    role: RosterRole
    position: int


@dataclass
class RosterSnapshot:
    event_id: int
    kind: RosterKind
    capacities: dict[RosterRole, int]
    assignments: list[RosterAssignment] = field(default_factory=list)

    def assignment_of(self, user_id: int) -> RosterAssignment | None:
        for assignment in self.assignments:
            if assignment.user_id == user_id:
                return assignment
        return None

    def filled_count(self, role: RosterRole) -> int:
        return filled_count(role, self.assignments)

    def is_full(self, role: RosterRole) -> bool:
        return is_full(role, self.assignments, self.capacities)

    def roles(self) -> list[RosterRole]:
        return sorted(self.capacities, key=lambda r: ROLE_RULES[r].order)

    def by_role(self, role: RosterRole) -> list[RosterAssignment]:
        return sorted((a for a in self.assignments if a.role == role), key=lambda a: a.position)


def find_next_available_position(
    role: RosterRole, assignments: Iterable[RosterAssignment], capacity: int
) -> int | None:
    """Наименьшая свободная позиция роли в 1..capacity или None, если мест нет."""
    taken = {a.position for a in assignments if a.role == role}
    for position in range(1, capacity + 1):
        if position not in taken:
            return position
    return None


def filled_count(role: RosterRole, assignments: Iterable[RosterAssignment]) -> int:
    return sum(1 for a in assignments if a.role == role)


def is_full(
    role: RosterRole, assignments: Iterable[RosterAssignment], capacities: dict[RosterRole, int]
) -> bool:
    return filled_count(role, assignments) >= capacities.get(role, 0)


class RosterStore(Protocol):
    async def fetch_roster(self, event_id: int) -> RosterSnapshot: ...

    async def join_roster(
        self, event_id: int, user_id: int, role: RosterRole, position: int
    ) -> RosterAssignment: ...

    async def leave_roster(self, event_id: int, user_id: int) -> RosterAssignment: ...

    async def move_assignment(
        self, event_id: int, signup_id: int, role: RosterRole, position: int
    ) -> RosterAssignment: ...


class RosterAssignmentEngine:
    def __init__(self, store: RosterStore, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts

    @staticmethod
    def candidate_roles(snapshot: RosterSnapshot, preferred_role: RosterRole | None) -> list[RosterRole]:
        """Роли в порядке попыток записи."""
        if preferred_role is not None:
            preferred_role = RosterRole(preferred_role)
        if snapshot.kind is RosterKind.GENERIC:
            if preferred_role is SECONDARY_POOL:
                return [SECONDARY_POOL]
            if preferred_role not in (None, PRIMARY_POOL):
                raise ValueError(f"Role '{preferred_role}' is not available in a generic roster")
            return [r for r in (PRIMARY_POOL, SECONDARY_POOL) if r in snapshot.capacities]

        if preferred_role is None:
            raise ValueError("A role must be chosen for a role-based roster")
        if preferred_role not in snapshot.capacities:
            raise ValueError(f"Role '{preferred_role}' is not part of this roster")
        return [preferred_role]

    async def join(
        self, event_id: int, user_id: int, preferred_role: RosterRole | None = None
    ) -> RosterAssignment:
        snapshot = await self.store.fetch_roster(event_id)
        if snapshot.assignment_of(user_id) is not None:
            raise AlreadyJoinedError(event_id, user_id)

        roles = self.candidate_roles(snapshot, preferred_role)
        for attempt in range(1, self.max_attempts + 1):
            for role in roles:
                position = find_next_available_position(
                    role, snapshot.assignments, snapshot.capacities.get(role, 0)
                )
                if position is None:
                    continue
                try:
                    assignment = await self.store.join_roster(event_id, user_id, role, position)
                except PositionConflictError:
                    logger.info(
                        "Position %s:%s of event %s taken concurrently (attempt %s/%s)",
                        role.value, position, event_id, attempt, self.max_attempts,
                    )
                    break
                logger.info(
                    "User %s joined event %s as %s:%s", user_id, event_id, role.value, position
                )
                return assignment
            else:
                raise RosterFullError(event_id, roles[0])
            snapshot = await self.store.fetch_roster(event_id)

        logger.warning("Giving up joining event %s for user %s after %s attempts",
                       event_id, user_id, self.max_attempts)
        raise RosterFullError(event_id, roles[0])

    async def leave(self, event_id: int, user_id: int) -> RosterAssignment:
        removed = await self.store.leave_roster(event_id, user_id)
        logger.info("User %s left event %s (%s:%s)",
                    user_id, event_id, removed.role.value, removed.position)
        if removed.role == PRIMARY_POOL:
            snapshot = await self.store.fetch_roster(event_id)
            if snapshot.kind is RosterKind.GENERIC:
                await self.promote_from_bench(snapshot)
        return removed

    async def promote_from_bench(self, snapshot: RosterSnapshot) -> RosterAssignment | None:
        """Переводит дольше всех ждущего запасного на освободившееся место игрока."""
        bench = sorted(snapshot.by_role(SECONDARY_POOL), key=lambda a: a.signup_id)
        if not bench:
            return None
        position = find_next_available_position(
            PRIMARY_POOL, snapshot.assignments, snapshot.capacities.get(PRIMARY_POOL, 0)
        )
        if position is None:
            return None
        candidate = bench[0]
        try:
            promoted = await self.store.move_assignment(
                snapshot.event_id, candidate.signup_id, PRIMARY_POOL, position
            )
        except (PositionConflictError, SignupNotFoundError):
            logger.info("Bench promotion for event %s lost a race, skipping", snapshot.event_id)
            return None
        logger.info("Promoted user %s from bench to %s:%s in event %s",
                    promoted.user_id, PRIMARY_POOL.value, position, snapshot.event_id)
        return promoted
