from typing import FrozenSet

from pydantic import BaseModel, ConfigDict

from accounts.auth.roles import Role


class Principal(BaseModel):
    """The identity a request acts as.

    ``authorities`` are the caller's global roles: ROLE_ANONYMOUS for an
    unauthenticated caller, ROLE_USER for any signed-in user, plus ROLE_ROOT
    for root users. Roles held on accounts are looked up per request.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    username: str | None = None
    email: str | None = None
    authorities: FrozenSet[Role] = frozenset({Role.ROLE_ANONYMOUS})

    @property
    def is_anonymous(self) -> bool:
        return self.id is None


ANONYMOUS = Principal()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
