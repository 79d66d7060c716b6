from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from accounts.auth.jwt import create_access_token
from accounts.db.repository import Repository
from accounts.models import LoginRequest
from accounts.passwords import PasswordHasher
from accounts.services import get_hasher, get_repository

router = APIRouter()


@router.post("/login")
async def login(
    request: LoginRequest,
    repository: Repository = Depends(get_repository),
    hasher: PasswordHasher = Depends(get_hasher),
) -> Dict:
    """Verify a username and password and return a JWT access token."""
    user = await repository.find_user_by_username(request.username)
    if user is None or not hasher.verify(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token_response = create_access_token(user)

    return {
        "id": user.id,
        "username": user.username,
        "access_token": token_response.access_token,
        "token_type": token_response.token_type,
        "expires_in": token_response.expires_in,
    }
