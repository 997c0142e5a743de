from dataclasses import dataclass
from enum import Enum


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    COMMITTED = "committed"
    BLOCKED = "blocked"
    FREED = "freed"


class RosterRole(str, Enum):
    TANK = "tank"
    HEALER = "healer"
    DPS = "dps"
    FLEX = "flex"
    PLAYER = "player"
    BENCH = "bench"


class RosterKind(str, Enum):
    ROLE_BASED = "role_based"
    GENERIC = "generic"


@dataclass(frozen=True)
class StatusRule:
    editable: bool
    symbol: str
    label: str


@dataclass(frozen=True)
class RoleRule:
    kind: RosterKind
    label: str
    emoji: str
    # Порядок отображения в ростере
    order: int


STATUS_RULES: dict[SlotStatus, StatusRule] = {
    SlotStatus.AVAILABLE: StatusRule(editable=True, symbol="█", label="Свободен"),
    SlotStatus.COMMITTED: StatusRule(editable=False, symbol="▓", label="Записан"),
    SlotStatus.BLOCKED: StatusRule(editable=False, symbol="╳", label="Недоступен"),
    SlotStatus.FREED: StatusRule(editable=True, symbol="▒", label="Освобожден"),
}

ROLE_RULES: dict[RosterRole, RoleRule] = {
    RosterRole.TANK: RoleRule(RosterKind.ROLE_BASED, "Танк", "🛡️", 0),
    RosterRole.HEALER: RoleRule(RosterKind.ROLE_BASED, "Хил", "💚", 1),
    RosterRole.DPS: RoleRule(RosterKind.ROLE_BASED, "ДД", "⚔️", 2),
    RosterRole.FLEX: RoleRule(RosterKind.ROLE_BASED, "Флекс", "🔄", 3),
    RosterRole.PLAYER: RoleRule(RosterKind.GENERIC, "Игрок", "🎮", 0),
    RosterRole.BENCH: RoleRule(RosterKind.GENERIC, "Запас", "🪑", 1),
}


def check_coverage(table: dict, enum_cls) -> None:
    """Таблица обязана покрывать все члены перечисления."""
    missing = set(enum_cls) - set(table)
    if missing:
        names = ", ".join(sorted(m.value for m in missing))
        raise RuntimeError(f"{enum_cls.__name__} members without a rule: {names}")


check_coverage(STATUS_RULES, SlotStatus)
check_coverage(ROLE_RULES, RosterRole)

LOCKED_STATUSES = frozenset(s for s, rule in STATUS_RULES.items() if not rule.editable)
EDITABLE_STATUSES = frozenset(s for s, rule in STATUS_RULES.items() if rule.editable)

DEFAULT_CAPACITIES: dict[RosterKind, dict[RosterRole, int]] = {
    RosterKind.ROLE_BASED: {
        RosterRole.TANK: 2,
        RosterRole.HEALER: 4,
        RosterRole.DPS: 14,
        RosterRole.FLEX: 5,
    },
    RosterKind.GENERIC: {
        RosterRole.PLAYER: 10,
        RosterRole.BENCH: 5,
    },
}

PRIMARY_POOL = RosterRole.PLAYER
SECONDARY_POOL = RosterRole.BENCH


def is_locked(status: SlotStatus | None) -> bool:
    return status is not None and not STATUS_RULES[status].editable


def roles_for(kind: RosterKind) -> list[RosterRole]:
    """Роли данного типа ростера в порядке отображения."""
    return sorted(
        (role for role, rule in ROLE_RULES.items() if rule.kind is kind),
        key=lambda r: ROLE_RULES[r].order,
    )


def kind_of(roles) -> RosterKind:
    """Определяет тип ростера по набору ролей. Смешивать типы нельзя."""
    kinds = {ROLE_RULES[RosterRole(r)].kind for r in roles}
    if len(kinds) != 1:
        raise ValueError(f"Нельзя смешивать роли разных типов ростера: {sorted(roles)}")
    return kinds.pop()
