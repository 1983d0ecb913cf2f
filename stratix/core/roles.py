import enum
from typing import Dict, FrozenSet, Union


class RoleType(str, enum.Enum):
    corporativo = "corporativo"
    gerente = "gerente"
    empleado = "empleado"


ROLE_LEVELS: Dict[RoleType, int] = {
    RoleType.corporativo: 3,
    RoleType.gerente: 2,
    RoleType.empleado: 1,
}

# Which target roles an admin of a given role may hand out
ASSIGNABLE_ROLES: Dict[RoleType, FrozenSet[RoleType]] = {
    RoleType.corporativo: frozenset({RoleType.corporativo, RoleType.gerente, RoleType.empleado}),
    RoleType.gerente: frozenset({RoleType.empleado}),
    RoleType.empleado: frozenset(),
}

RoleLike = Union[RoleType, str]


def _coerce(role: RoleLike) -> RoleType:
    return role if isinstance(role, RoleType) else RoleType(role)


def can_assign_role(admin_role: RoleLike, target_role: RoleLike) -> bool:
    """Return True if ``admin_role`` may assign ``target_role``."""
    try:
        return _coerce(target_role) in ASSIGNABLE_ROLES[_coerce(admin_role)]
    except ValueError:
        return False


def has_role_at_least(role: RoleLike, minimum: RoleLike) -> bool:
    try:
        return ROLE_LEVELS[_coerce(role)] >= ROLE_LEVELS[_coerce(minimum)]
    except ValueError:
        return False
