from typing import Dict

from fastapi import APIRouter, Depends

from accounts.auth.dependencies import get_current_principal, get_optional_principal
from accounts.auth.models import Principal
from accounts.models import (
    ChangePasswordRequest,
    CheckUsernameRequest,
    CreateUserRequest,
    ForgotPasswordRequest,
    PasswordChangeRedemptionRequest,
    RedeemInvitationResponse,
    UpdateUserDetailsRequest,
)
from accounts.rights import AccountRightsService
from accounts.services import get_rights_service, get_user_service
from accounts.users import UserService

router = APIRouter()


@router.post("/")
async def create_user(
    request: CreateUserRequest,
    principal: Principal = Depends(get_optional_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    user = await service.create_user(
        principal,
        request.username,
        request.password,
        request.email,
        request.first_name,
        request.last_name,
    )
    return {"id": user.id, "username": user.username}


@router.post("/check-username")
async def check_username(
    request: CheckUsernameRequest,
    principal: Principal = Depends(get_optional_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    await service.check_username(principal, request.username)
    return {"available": True}


@router.get("/by-username/{username}")
async def get_user_by_username(
    username: str,
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    user = await service.get_user_by_username(principal, username)
    return user.model_dump(exclude={"password_hash"})


@router.put("/{user_id}")
async def update_user_details(
    user_id: int,
    request: UpdateUserDetailsRequest,
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    user = await service.update_user_details(
        principal, user_id, request.first_name, request.last_name, request.email
    )
    return user.model_dump(exclude={"password_hash"})


@router.put("/{user_id}/password")
async def change_password(
    user_id: int,
    request: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    await service.change_password(
        principal, user_id, request.old_password, request.new_password
    )
    return {"success": True}


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    principal: Principal = Depends(get_optional_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    await service.forgot_password(principal, request.username)
    return {"success": True}


@router.get("/change-password/{code}")
async def retrieve_password_change_invitation(
    code: str,
    principal: Principal = Depends(get_optional_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    invitation = await service.retrieve_password_change_invitation(principal, code)
    return {
        "user_email": invitation.user_email,
        "expiration_date": invitation.expiration_date,
    }


@router.post("/change-password/{code}")
async def redeem_password_change(
    code: str,
    request: PasswordChangeRedemptionRequest,
    principal: Principal = Depends(get_optional_principal),
    service: UserService = Depends(get_user_service),
) -> Dict:
    await service.redeem_password_change(principal, code, request.new_password)
    return {"success": True}


@router.post("/redeem/{code}", response_model=RedeemInvitationResponse)
async def redeem_account_invitation(
    code: str,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> RedeemInvitationResponse:
    account_id = await service.redeem_account_invitation(principal, principal.id, code)
    return RedeemInvitationResponse(account_id=account_id)
