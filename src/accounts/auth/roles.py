from enum import Enum
from typing import FrozenSet, Iterable, Optional

from accounts.auth.constants import ROLE_HIERARCHY


class Role(str, Enum):
    ROLE_ANONYMOUS = "ROLE_ANONYMOUS"
    ROLE_USER = "ROLE_USER"
    ROLE_ADMIN = "ROLE_ADMIN"
    ROLE_OWNER = "ROLE_OWNER"
    ROLE_ROOT = "ROLE_ROOT"

    @property
    def level(self) -> int:
        return ROLE_HIERARCHY[self.value]


def _as_role(role) -> Role:
    # Role("FOO") raises ValueError for anything outside the hierarchy
    return role if isinstance(role, Role) else Role(role)


def dominates(a, b) -> bool:
    """True if role ``a`` is at or above role ``b``."""
    return _as_role(a).level >= _as_role(b).level


def implied_set(role) -> FrozenSet[Role]:
    """The role itself plus every role below it in the hierarchy."""
    role = _as_role(role)
    return frozenset(r for r in Role if role.level >= r.level)


def expand_roles(roles: Iterable) -> FrozenSet[Role]:
    """Union of the implied sets of ``roles``."""
    expanded = set()
    for role in roles:
        expanded |= implied_set(role)
    return frozenset(expanded)


def account_role_set(roles: Iterable) -> FrozenSet[Role]:
    """Role set stored on an account membership.

    ROLE_ANONYMOUS only describes unauthenticated callers, so it is never
    kept on a membership.
    """
    return expand_roles(roles) - {Role.ROLE_ANONYMOUS}


def highest_role(roles: Optional[Iterable]) -> Optional[Role]:
    roles = [_as_role(r) for r in roles or ()]
    if not roles:
        return None
    return max(roles, key=lambda r: r.level)
