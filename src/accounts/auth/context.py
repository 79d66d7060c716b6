from typing import FrozenSet, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from accounts.auth.models import Principal
from accounts.auth.roles import Role
from accounts.db.repository import Repository


class AuthContext(BaseModel):
    """Everything a secured rule is evaluated against.

    ``caller_account_roles`` is None when the caller holds no rights on
    ``account_id``. ``target_account_roles`` is empty when the target holds
    none. ``proposed_roles`` is only set by operations that assign roles.
    """

    model_config = ConfigDict(frozen=True)

    caller_id: int | None = None
    caller_username: str | None = None
    caller_roles: FrozenSet[Role] = frozenset({Role.ROLE_ANONYMOUS})

    account_id: int | None = None
    caller_account_roles: FrozenSet[Role] | None = None

    target_user_id: int | None = None
    target_username: str | None = None
    target_account_roles: FrozenSet[Role] = frozenset()

    proposed_roles: FrozenSet[Role] | None = None

    @property
    def effective_caller_roles(self) -> FrozenSet[Role]:
        # roles held on other accounts never count towards this account
        return self.caller_roles | (self.caller_account_roles or frozenset())


async def load_context(
    repository: Repository,
    principal: Principal,
    account_id: int | None = None,
    target_user_id: int | None = None,
    target_username: str | None = None,
    proposed_roles: Optional[Iterable[Role]] = None,
) -> AuthContext:
    """Build the AuthContext for ``principal`` acting on the given target."""
    caller_account_roles = None
    target_account_roles = frozenset()

    if account_id is not None:
        if principal.id is not None:
            caller_rights = await repository.find_rights(account_id, principal.id)
            if caller_rights and caller_rights.roles:
                caller_account_roles = frozenset(caller_rights.roles)

        if target_user_id is not None:
            target_rights = await repository.find_rights(account_id, target_user_id)
            if target_rights:
                target_account_roles = frozenset(target_rights.roles)

    return AuthContext(
        caller_id=principal.id,
        caller_username=principal.username,
        caller_roles=principal.authorities,
        account_id=account_id,
        caller_account_roles=caller_account_roles,
        target_user_id=target_user_id,
        target_username=target_username,
        target_account_roles=target_account_roles,
        proposed_roles=frozenset(proposed_roles) if proposed_roles is not None else None,
    )
