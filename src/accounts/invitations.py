import hashlib
import re
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List

import backoff
from pydantic import EmailStr, TypeAdapter, ValidationError

from accounts.auth.constants import MAX_CODE_ATTEMPTS
from accounts.auth.roles import Role, account_role_set
from accounts.config import DEFAULT_INVITATION_VALIDITY_DAYS
from accounts.db.repository import Repository
from accounts.errors import (
    CodeGenerationExhausted,
    DuplicateRedemptionCode,
    InvalidEmailAddresses,
    InvalidRedemptionCode,
    UnsentInvitation,
)
from accounts.models import AccountRights, User, UserInvitation
from accounts.notifier import InvitationMessageFormatter, Notifier
from accounts.utils.logging import logger

EMAIL_SEPARATORS = re.compile(r"[,;\s]+")
email_address = TypeAdapter(EmailStr)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_email_addresses(text: str) -> List[str]:
    """Split a free-form list of addresses, dropping blanks and duplicates."""
    addresses = []
    for address in EMAIL_SEPARATORS.split(text or ""):
        if address and address not in addresses:
            addresses.append(address)
    return addresses


def _is_valid_email(address: str) -> bool:
    try:
        email_address.validate_python(address)
    except ValidationError:
        return False
    return True


def validate_email_addresses(addresses: List[str]) -> None:
    bad_addresses = [a for a in addresses if not _is_valid_email(a)]
    if bad_addresses:
        raise InvalidEmailAddresses(bad_addresses)


def generate_redemption_code(email: str) -> str:
    """One-way code derived from the address and the issuance time.

    A random salt makes the code unguessable for anyone who knows the
    address and roughly when the invitation was sent.
    """
    seed = f"{email}{time.time_ns()}{secrets.token_hex(16)}"
    return hashlib.sha256(seed.encode()).hexdigest()


class InvitationLedger:
    """Issues, lists, expires and redeems user invitations.

    Expiry is lazy: expired invitations are deleted when a read comes across
    them, there is no background sweep.
    """

    def __init__(
        self,
        repository: Repository,
        notifier: Notifier,
        formatter: InvitationMessageFormatter,
        validity_days: int = DEFAULT_INVITATION_VALIDITY_DAYS,
        now: Callable[[], datetime] = utc_now,
        code_generator: Callable[[str], str] = generate_redemption_code,
    ):
        self.repository = repository
        self.notifier = notifier
        self.formatter = formatter
        self.validity_days = validity_days
        self.now = now
        self.code_generator = code_generator

    async def _save_with_unique_code(self, invitation: UserInvitation) -> UserInvitation:
        @backoff.on_exception(
            backoff.constant,
            DuplicateRedemptionCode,
            max_tries=MAX_CODE_ATTEMPTS,
            interval=0,
            jitter=None,
        )
        async def _attempt():
            code = self.code_generator(invitation.user_email)
            return await self.repository.save_invitation(
                invitation.model_copy(update={"redemption_code": code})
            )

        try:
            return await _attempt()
        except DuplicateRedemptionCode:
            logger.error(
                f"Redemption code collision on every attempt for {invitation.user_email}"
            )
            raise CodeGenerationExhausted(MAX_CODE_ATTEMPTS)

    async def _issue(self, invitation: UserInvitation, message) -> UserInvitation:
        """Persist ``invitation`` and notify its recipient.

        ``message`` renders (subject, body) from the stored invitation. When
        the notification fails the invitation is removed again.
        """
        saved = await self._save_with_unique_code(invitation)

        subject, body = message(saved)
        try:
            await self.notifier.send(subject, body, saved.user_email)
        except Exception as e:
            logger.error(f"Error: Unable to send email to: {saved.user_email}: {e}")
            await self.repository.delete_invitation(saved.id)
            raise UnsentInvitation(saved.user_email) from e

        return saved

    def _new_invitation(self, email: str, validity_days: int | None, **fields) -> UserInvitation:
        now = self.now()
        days = self.validity_days if validity_days is None else validity_days
        return UserInvitation(
            user_email=email,
            redemption_code="",
            creation_date=now,
            expiration_date=now + timedelta(days=days),
            **fields,
        )

    async def invite(
        self,
        account_id: int,
        email: str,
        admin_username: str | None,
        validity_days: int | None = None,
    ) -> UserInvitation:
        account = await self.repository.get_account(account_id)

        logger.info(f"Inviting user at address {email} to account {account.subdomain}")

        invitation = self._new_invitation(
            email, validity_days, account_id=account_id, admin_username=admin_username
        )
        return await self._issue(
            invitation, lambda saved: self.formatter.account_invitation(saved, account)
        )

    async def invite_users(
        self, account_id: int, emails: str, admin_username: str | None
    ) -> List[UserInvitation]:
        addresses = parse_email_addresses(emails)
        if not addresses:
            raise InvalidEmailAddresses([emails or ""])

        validate_email_addresses(addresses)

        return [
            await self.invite(account_id, address, admin_username)
            for address in addresses
        ]

    async def invite_password_reset(self, user: User) -> UserInvitation:
        logger.info(f"Issuing password change invitation for user {user.username}")

        invitation = self._new_invitation(user.email, None, user_id=user.id)
        return await self._issue(invitation, self.formatter.password_change)

    async def list_pending(self, account_id: int) -> List[UserInvitation]:
        now = self.now()
        pending = []

        for invitation in await self.repository.find_invitations_by_account(account_id):
            if invitation.is_expired(now):
                logger.info(f"Removing expired invitation {invitation.id}")
                await self.repository.delete_invitation(invitation.id)
            else:
                pending.append(invitation)

        return pending

    async def _find_redeemable(self, code: str, password_reset: bool) -> UserInvitation:
        invitation = await self.repository.find_invitation_by_code(code)
        if invitation is None or invitation.is_password_reset != password_reset:
            raise InvalidRedemptionCode(code)

        if invitation.is_expired(self.now()):
            logger.info(f"Removing expired invitation {invitation.id}")
            await self.repository.delete_invitation(invitation.id)
            raise InvalidRedemptionCode(code)

        return invitation

    async def redeem(self, code: str, user_id: int) -> int:
        """Redeem an account invitation and return the account id.

        The membership grant and the deletion of the invitation commit
        together.
        """
        expired = False
        async with self.repository.transaction():
            try:
                invitation = await self._find_redeemable(code, password_reset=False)
            except InvalidRedemptionCode:
                # keep the deletion of an expired invitation
                expired = True
            else:
                await self.repository.get_user(user_id)

                rights = await self.repository.find_rights(invitation.account_id, user_id)
                if rights is None:
                    await self.repository.save_rights(
                        AccountRights(
                            account_id=invitation.account_id,
                            user_id=user_id,
                            roles=account_role_set([Role.ROLE_USER]),
                        )
                    )

                await self.repository.delete_invitation(invitation.id)

        if expired:
            raise InvalidRedemptionCode(code)

        logger.info(
            f"User {user_id} redeemed invitation {invitation.id} "
            f"to account {invitation.account_id}"
        )
        return invitation.account_id

    async def retrieve_password_change_invitation(self, code: str) -> UserInvitation:
        return await self._find_redeemable(code, password_reset=True)

    async def redeem_password_change(self, code: str) -> int:
        """Consume a password-reset invitation and return its user id."""
        expired = False
        async with self.repository.transaction():
            try:
                invitation = await self._find_redeemable(code, password_reset=True)
            except InvalidRedemptionCode:
                expired = True
            else:
                await self.repository.delete_invitation(invitation.id)

        if expired:
            raise InvalidRedemptionCode(code)

        logger.info(f"Password change invitation {invitation.id} redeemed")
        return invitation.user_id

    async def delete_pending(self, invitation_id: int) -> None:
        logger.info(f"Deleting user invitation with id {invitation_id}")
        await self.repository.delete_invitation(invitation_id)
