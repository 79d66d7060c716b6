from datetime import datetime, timezone, timedelta
from typing import FrozenSet

import jwt
from fastapi import HTTPException

from accounts.auth.constants import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM
from accounts.auth.models import Principal, TokenResponse
from accounts.auth.roles import Role
from accounts.models import User
from accounts.settings import get_settings

TOKEN_TYPE = "access"


def _get_secret() -> str:
    secret = get_settings().jwt_secret
    if not secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return secret


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def authorities_for(user: User) -> FrozenSet[Role]:
    """Global roles of a signed-in user: ROLE_USER, plus ROLE_ROOT for root users."""
    if user.root:
        return frozenset({Role.ROLE_USER, Role.ROLE_ROOT})
    return frozenset({Role.ROLE_USER})


def create_access_token(user: User) -> TokenResponse:
    """Sign a token naming the user and the global roles held at sign-in."""
    issued_at = datetime.now(timezone.utc)

    claims = {
        "sub": str(user.id),
        "username": user.username,
        "authorities": sorted(r.value for r in authorities_for(user)),
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }

    return TokenResponse(
        access_token=jwt.encode(claims, _get_secret(), algorithm=JWT_ALGORITHM),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry and token type. Raises HTTPException(401)."""
    try:
        claims = jwt.decode(
            token,
            _get_secret(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.MissingRequiredClaimError:
        raise _unauthorized("Invalid token payload")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")

    if claims.get("type") != TOKEN_TYPE:
        raise _unauthorized("Invalid token type")

    return claims


def principal_from_claims(claims: dict) -> Principal:
    """Map decoded claims onto the Principal they describe."""
    try:
        return Principal(
            id=int(claims["sub"]),
            username=claims.get("username"),
            authorities=frozenset(Role(r) for r in claims.get("authorities") or ()),
        )
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid token payload")
