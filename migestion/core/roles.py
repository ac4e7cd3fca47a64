# migestion/core/roles.py
from enum import Enum
from typing import Iterable


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


# Higher level satisfies any check for a lower one. No two roles share a level.
ROLE_HIERARCHY = {
    Role.OWNER: 100,
    Role.ADMIN: 80,
    Role.MANAGER: 60,
    Role.USER: 40,
}

TENANT_ADMIN_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def role_level(role: str) -> int:
    """Numeric level of a role name; unknown names get 0."""
    try:
        return ROLE_HIERARCHY[Role(role)]
    except ValueError:
        return 0


def satisfies_any(role: str, allowed: Iterable[str]) -> bool:
    """True when ``role`` is at or above the level of at least one allowed role."""
    level = role_level(role)
    return any(level >= role_level(r) for r in allowed if role_level(r) > 0)


def is_exactly(role: str, allowed: Iterable[str]) -> bool:
    names = {r.value if isinstance(r, Role) else r for r in allowed}
    return (role.value if isinstance(role, Role) else role) in names
