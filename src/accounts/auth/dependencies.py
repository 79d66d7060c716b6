from typing import Optional

from fastapi import Depends, Header, HTTPException

from accounts.auth.jwt import authorities_for, decode_access_token, principal_from_claims
from accounts.auth.models import ANONYMOUS, Principal
from accounts.db.repository import Repository
from accounts.errors import NotFound
from accounts.services import get_repository


async def _load_principal(repository: Repository, claimed: Principal) -> Principal:
    """Check the claimed principal against the stored user.

    A token whose authorities no longer match the user (root granted or
    withdrawn since sign-in) is rejected, so the caller signs in again.
    """
    try:
        user = await repository.get_user(claimed.id)
    except NotFound:
        raise HTTPException(status_code=401, detail="User not found")

    if claimed.authorities != authorities_for(user):
        raise HTTPException(status_code=401, detail="Token authorities are out of date")

    return claimed.model_copy(update={"username": user.username, "email": user.email})


async def get_current_principal(
    authorization: str = Header(..., alias="Authorization"),
    repository: Repository = Depends(get_repository),
) -> Principal:
    """Strict JWT-only authentication dependency.

    Extracts the Bearer token from the Authorization header,
    decodes it, and returns the authenticated principal.
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    claims = decode_access_token(authorization[len("Bearer "):])
    return await _load_principal(repository, principal_from_claims(claims))


async def get_optional_principal(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    repository: Repository = Depends(get_repository),
) -> Principal:
    """Authentication dependency for operations open to anonymous callers.

    A valid Bearer token yields the signed-in principal; no token yields
    the anonymous principal. A malformed or expired token is still a 401.
    """
    if authorization is None:
        return ANONYMOUS

    return await get_current_principal(authorization, repository)
