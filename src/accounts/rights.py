from typing import Iterable, List

from accounts.auth.context import load_context
from accounts.auth.guard import AuthorizationGuard
from accounts.auth.models import Principal
from accounts.auth.roles import Role, account_role_set
from accounts.db.repository import Repository
from accounts.invitations import InvitationLedger
from accounts.models import Account, AccountRights, Member, UserInvitation
from accounts.utils.logging import logger


class AccountRightsService:
    """Membership operations on an account.

    Every operation runs its authorization check before touching state;
    mutations load, check and write inside one repository transaction.
    """

    def __init__(
        self,
        repository: Repository,
        guard: AuthorizationGuard,
        ledger: InvitationLedger,
    ):
        self.repository = repository
        self.guard = guard
        self.ledger = ledger

    async def get_account(self, principal: Principal, account_id: int) -> Account:
        ctx = await load_context(self.repository, principal, account_id=account_id)
        self.guard.check("get_account", ctx)

        return await self.repository.get_account(account_id)

    async def update_account_info(
        self,
        principal: Principal,
        account_id: int,
        acct_name: str,
        org_name: str | None = None,
        department: str | None = None,
    ) -> Account:
        """Replace the descriptive fields of the account; the subdomain is kept."""
        async with self.repository.transaction():
            ctx = await load_context(self.repository, principal, account_id=account_id)
            self.guard.check("update_account_info", ctx)

            account = await self.repository.get_account(account_id)
            account = await self.repository.save_account(
                account.model_copy(
                    update={
                        "acct_name": acct_name,
                        "org_name": org_name,
                        "department": department,
                    }
                )
            )

        logger.info(f"User {principal.id} updated info of account {account_id}")
        return account

    async def grant_role(
        self, principal: Principal, account_id: int, user_id: int, roles: Iterable[Role]
    ) -> bool:
        """Set the user's roles on the account to the implied set of ``roles``.

        This replaces the current role set rather than adding to it. Returns
        False when the resulting set equals the current one, in which case
        nothing is written.
        """
        requested = frozenset(Role(r) for r in roles)

        async with self.repository.transaction():
            ctx = await load_context(
                self.repository,
                principal,
                account_id=account_id,
                target_user_id=user_id,
                proposed_roles=requested,
            )
            self.guard.check("grant_role", ctx)

            new_roles = account_role_set(requested)
            if not new_roles:
                raise ValueError(
                    "At least one account role is required; use revoke_all_rights to remove a user"
                )

            await self.repository.get_account(account_id)
            await self.repository.get_user(user_id)
            current = await self.repository.find_rights(account_id, user_id)
            if current is not None and current.roles == new_roles:
                return False

            await self.repository.save_rights(
                AccountRights(
                    id=current.id if current else None,
                    account_id=account_id,
                    user_id=user_id,
                    roles=new_roles,
                )
            )

        logger.info(
            f"User {principal.id} set roles of user {user_id} on account {account_id} "
            f"to {sorted(r.value for r in new_roles)}"
        )
        return True

    async def add_user_to_account(
        self, principal: Principal, account_id: int, user_id: int
    ) -> bool:
        """Give ``user_id`` the minimal member role. False if already a member."""
        async with self.repository.transaction():
            ctx = await load_context(
                self.repository, principal, account_id=account_id, target_user_id=user_id
            )
            self.guard.check("add_user_to_account", ctx)

            await self.repository.get_account(account_id)
            await self.repository.get_user(user_id)
            if await self.repository.find_rights(account_id, user_id) is not None:
                return False

            await self.repository.save_rights(
                AccountRights(
                    account_id=account_id,
                    user_id=user_id,
                    roles=account_role_set([Role.ROLE_USER]),
                )
            )

        logger.info(f"Added user {user_id} to account {account_id}")
        return True

    async def revoke_all_rights(
        self, principal: Principal, account_id: int, user_id: int
    ) -> None:
        """End the user's membership by deleting their rights record."""
        async with self.repository.transaction():
            ctx = await load_context(
                self.repository, principal, account_id=account_id, target_user_id=user_id
            )
            self.guard.check("revoke_all_rights", ctx)

            rights = await self.repository.find_rights(account_id, user_id)
            if rights is None:
                return

            await self.repository.delete_rights(rights)

        logger.info(f"Revoked all rights of user {user_id} on account {account_id}")

    async def list_members(self, principal: Principal, account_id: int) -> List[Member]:
        ctx = await load_context(self.repository, principal, account_id=account_id)
        self.guard.check("list_members", ctx)

        members = []
        for rights in await self.repository.find_rights_by_account(account_id):
            user = await self.repository.get_user(rights.user_id)
            members.append(
                Member(
                    user_id=user.id,
                    username=user.username,
                    email=user.email,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    roles=rights.roles,
                )
            )

        return members

    async def invite_users(
        self, principal: Principal, account_id: int, emails: str
    ) -> List[UserInvitation]:
        ctx = await load_context(self.repository, principal, account_id=account_id)
        self.guard.check("invite_users", ctx)

        return await self.ledger.invite_users(account_id, emails, principal.username)

    async def list_pending_invitations(
        self, principal: Principal, account_id: int
    ) -> List[UserInvitation]:
        ctx = await load_context(self.repository, principal, account_id=account_id)
        self.guard.check("list_pending_invitations", ctx)

        return await self.ledger.list_pending(account_id)

    async def delete_pending_invitation(
        self, principal: Principal, account_id: int, invitation_id: int
    ) -> None:
        ctx = await load_context(self.repository, principal, account_id=account_id)
        self.guard.check("delete_pending_invitation", ctx)

        # only invitations of this account may be cancelled through it
        invitations = await self.repository.find_invitations_by_account(account_id)
        if any(invitation.id == invitation_id for invitation in invitations):
            await self.ledger.delete_pending(invitation_id)

    async def redeem_account_invitation(
        self, principal: Principal, user_id: int, code: str
    ) -> int:
        ctx = await load_context(self.repository, principal, target_user_id=user_id)
        self.guard.check("redeem_account_invitation", ctx)

        return await self.ledger.redeem(code, user_id)
