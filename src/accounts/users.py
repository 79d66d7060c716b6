import re

from accounts.auth.context import load_context
from accounts.auth.guard import AuthorizationGuard
from accounts.auth.models import Principal
from accounts.config import (
    GROUP_PREFIX,
    RESERVED_USERNAMES,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
)
from accounts.db.repository import Repository
from accounts.errors import (
    InvalidPassword,
    InvalidUsername,
    NotFound,
    ReservedPrefix,
    ReservedUsername,
    UserAlreadyExists,
)
from accounts.invitations import InvitationLedger
from accounts.models import User, UserInvitation
from accounts.passwords import PasswordHasher
from accounts.utils.logging import logger

USERNAME_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9._-]*[a-z0-9])?$")


def validate_username(username: str) -> None:
    if username in RESERVED_USERNAMES:
        raise ReservedUsername(username)

    if username.startswith(GROUP_PREFIX):
        raise ReservedPrefix(username, GROUP_PREFIX)

    if (
        not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH
        or not USERNAME_PATTERN.match(username)
    ):
        raise InvalidUsername(username)


class UserService:
    def __init__(
        self,
        repository: Repository,
        guard: AuthorizationGuard,
        ledger: InvitationLedger,
        hasher: PasswordHasher,
    ):
        self.repository = repository
        self.guard = guard
        self.ledger = ledger
        self.hasher = hasher

    async def check_username(self, principal: Principal, username: str) -> None:
        """Raise if ``username`` is malformed, reserved or already taken."""
        ctx = await load_context(self.repository, principal, target_username=username)
        self.guard.check("check_username", ctx)

        validate_username(username)
        if await self.repository.find_user_by_username(username) is not None:
            raise UserAlreadyExists(username)

    async def create_user(
        self,
        principal: Principal,
        username: str,
        password: str,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        ctx = await load_context(self.repository, principal, target_username=username)
        self.guard.check("create_user", ctx)

        async with self.repository.transaction():
            await self.check_username(principal, username)
            user = await self.repository.save_user(
                User(
                    username=username,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    password_hash=self.hasher.hash(password),
                )
            )

        logger.info(f"Created user {username}")
        return user

    async def get_user_by_username(self, principal: Principal, username: str) -> User:
        ctx = await load_context(self.repository, principal, target_username=username)
        self.guard.check("get_user_by_username", ctx)

        user = await self.repository.find_user_by_username(username)
        if user is None:
            raise NotFound(f"User {username} not found")
        return user

    async def change_password(
        self, principal: Principal, user_id: int, old_password: str, new_password: str
    ) -> None:
        ctx = await load_context(self.repository, principal, target_user_id=user_id)
        self.guard.check("change_password", ctx)

        async with self.repository.transaction():
            user = await self.repository.get_user(user_id)
            if not self.hasher.verify(old_password, user.password_hash):
                raise InvalidPassword("Old password does not match")

            await self.repository.save_user(
                user.model_copy(update={"password_hash": self.hasher.hash(new_password)})
            )

        logger.info(f"Changed password of user {user.username}")

    async def forgot_password(self, principal: Principal, username: str) -> UserInvitation:
        """Send the user a single-use link for choosing a new password."""
        ctx = await load_context(self.repository, principal, target_username=username)
        self.guard.check("forgot_password", ctx)

        user = await self.repository.find_user_by_username(username)
        if user is None:
            raise NotFound(f"User {username} not found")

        return await self.ledger.invite_password_reset(user)

    async def retrieve_password_change_invitation(
        self, principal: Principal, code: str
    ) -> UserInvitation:
        ctx = await load_context(self.repository, principal)
        self.guard.check("retrieve_password_change_invitation", ctx)

        return await self.ledger.retrieve_password_change_invitation(code)

    async def redeem_password_change(
        self, principal: Principal, code: str, new_password: str
    ) -> None:
        ctx = await load_context(self.repository, principal)
        self.guard.check("redeem_password_change", ctx)

        # outside the transaction, so an expired invitation stays deleted
        await self.ledger.retrieve_password_change_invitation(code)

        async with self.repository.transaction():
            user_id = await self.ledger.redeem_password_change(code)
            user = await self.repository.get_user(user_id)
            await self.repository.save_user(
                user.model_copy(update={"password_hash": self.hasher.hash(new_password)})
            )

        logger.info(f"Password of user {user.username} reset through invitation")

    async def update_user_details(
        self,
        principal: Principal,
        user_id: int,
        first_name: str | None,
        last_name: str | None,
        email: str,
    ) -> User:
        ctx = await load_context(self.repository, principal, target_user_id=user_id)
        self.guard.check("update_user_details", ctx)

        async with self.repository.transaction():
            user = await self.repository.get_user(user_id)
            user = await self.repository.save_user(
                user.model_copy(
                    update={"first_name": first_name, "last_name": last_name, "email": email}
                )
            )

        logger.info(f"Updated details of user {user.username}")
        return user
