from typing import Dict, List

from fastapi import APIRouter, Depends

from accounts.auth.dependencies import get_current_principal
from accounts.auth.models import Principal
from accounts.models import (
    Account,
    GrantRolesRequest,
    InviteUsersRequest,
    Member,
    PendingInvitation,
    UpdateAccountInfoRequest,
)
from accounts.rights import AccountRightsService
from accounts.services import get_rights_service

router = APIRouter()


@router.get("/{account_id}", response_model=Account)
async def get_account(
    account_id: int,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> Account:
    return await service.get_account(principal, account_id)


@router.put("/{account_id}", response_model=Account)
async def update_account_info(
    account_id: int,
    request: UpdateAccountInfoRequest,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> Account:
    return await service.update_account_info(
        principal, account_id, request.acct_name, request.org_name, request.department
    )


@router.get("/{account_id}/members", response_model=List[Member])
async def list_members(
    account_id: int,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> List[Member]:
    return await service.list_members(principal, account_id)


@router.post("/{account_id}/members/{user_id}")
async def add_user_to_account(
    account_id: int,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> Dict:
    return {"added": await service.add_user_to_account(principal, account_id, user_id)}


@router.put("/{account_id}/members/{user_id}")
async def grant_role(
    account_id: int,
    user_id: int,
    request: GrantRolesRequest,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> Dict:
    updated = await service.grant_role(principal, account_id, user_id, request.roles)
    return {"updated": updated}


@router.delete("/{account_id}/members/{user_id}")
async def revoke_all_rights(
    account_id: int,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> Dict:
    await service.revoke_all_rights(principal, account_id, user_id)
    return {"success": True}


@router.get("/{account_id}/invitations", response_model=List[PendingInvitation])
async def list_pending_invitations(
    account_id: int,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> List[PendingInvitation]:
    return await service.list_pending_invitations(principal, account_id)


@router.post("/{account_id}/invitations", response_model=List[PendingInvitation])
async def invite_users(
    account_id: int,
    request: InviteUsersRequest,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> List[PendingInvitation]:
    return await service.invite_users(principal, account_id, request.emails)


@router.delete("/{account_id}/invitations/{invitation_id}")
async def delete_pending_invitation(
    account_id: int,
    invitation_id: int,
    principal: Principal = Depends(get_current_principal),
    service: AccountRightsService = Depends(get_rights_service),
) -> Dict:
    await service.delete_pending_invitation(principal, account_id, invitation_id)
    return {"success": True}
