from datetime import datetime
from typing import FrozenSet, List

from pydantic import BaseModel, EmailStr, Field

from accounts.auth.roles import Role


class User(BaseModel):
    id: int | None = None
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    password_hash: str = Field(default="", repr=False)
    root: bool = False


class Account(BaseModel):
    id: int | None = None
    subdomain: str
    acct_name: str
    org_name: str | None = None
    department: str | None = None


class AccountRights(BaseModel):
    id: int | None = None
    account_id: int
    user_id: int
    roles: FrozenSet[Role] = frozenset()


class UserInvitation(BaseModel):
    """An outstanding account invitation or password-reset grant.

    Account invitations carry ``account_id``; password-reset invitations have
    no account and are bound to ``user_id`` instead.
    """

    id: int | None = None
    account_id: int | None = None
    user_id: int | None = None
    user_email: str
    admin_username: str | None = None
    redemption_code: str
    creation_date: datetime
    expiration_date: datetime

    @property
    def is_password_reset(self) -> bool:
        return self.account_id is None

    def is_expired(self, now: datetime) -> bool:
        return self.expiration_date <= now


class Member(BaseModel):
    user_id: int
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    roles: FrozenSet[Role]


class GrantRolesRequest(BaseModel):
    roles: List[Role]


class InviteUsersRequest(BaseModel):
    emails: str


class RedeemInvitationResponse(BaseModel):
    account_id: int


class CheckUsernameRequest(BaseModel):
    username: str


class CreateUserRequest(BaseModel):
    username: str
    password: str
    email: str
    first_name: str | None = None
    last_name: str | None = None


class UpdateUserDetailsRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: EmailStr


class UpdateAccountInfoRequest(BaseModel):
    acct_name: str
    org_name: str | None = None
    department: str | None = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class ForgotPasswordRequest(BaseModel):
    username: str


class PasswordChangeRedemptionRequest(BaseModel):
    new_password: str


class LoginRequest(BaseModel):
    username: str
    password: str


class PendingInvitation(BaseModel):
    """Invitation as shown to account administrators, without its code."""

    id: int
    account_id: int | None = None
    user_email: str
    admin_username: str | None = None
    creation_date: datetime
    expiration_date: datetime
