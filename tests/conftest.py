import os
import tempfile
from datetime import datetime, timezone
from unittest.mock import AsyncMock

# settings are read at import time, keep logs out of the source tree
_log_dir = tempfile.mkdtemp(prefix="accounts-tests-")
os.environ.setdefault("LOG_FILE_PATH", os.path.join(_log_dir, "backend.log"))
os.environ.setdefault("DB_LOG_FILE_PATH", os.path.join(_log_dir, "db.log"))
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests")

import pytest
import pytest_asyncio
from passlib.context import CryptContext

from accounts.auth.guard import get_default_guard
from accounts.auth.jwt import authorities_for
from accounts.auth.models import Principal
from accounts.auth.roles import Role, account_role_set
from accounts.db.sqlite import SqliteRepository
from accounts.invitations import InvitationLedger
from accounts.models import Account, AccountRights, User
from accounts.notifier import InvitationMessageFormatter
from accounts.passwords import CryptContextPasswordHasher
from accounts.rights import AccountRightsService
from accounts.users import UserService

APP_URL = "https://accounts.example.org"


class Clock:
    """Settable replacement for the ledger's ``now``."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current


def principal_for(user: User) -> Principal:
    return Principal(
        id=user.id,
        username=user.username,
        email=user.email,
        authorities=authorities_for(user),
    )


@pytest.fixture
def clock():
    return Clock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def hasher():
    return CryptContextPasswordHasher(CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))


@pytest.fixture
def guard():
    return get_default_guard()


@pytest_asyncio.fixture
async def repository(tmp_path):
    repo = SqliteRepository(str(tmp_path / "accounts.db"))
    await repo.initialize()
    return repo


@pytest.fixture
def ledger(repository, notifier, clock):
    return InvitationLedger(
        repository, notifier, InvitationMessageFormatter(APP_URL), now=clock
    )


@pytest.fixture
def rights_service(repository, guard, ledger):
    return AccountRightsService(repository, guard, ledger)


@pytest.fixture
def user_service(repository, guard, ledger, hasher):
    return UserService(repository, guard, ledger, hasher)


@pytest.fixture
def make_user(repository, hasher):
    async def _make_user(username: str, password: str = "secret-pass", root: bool = False):
        return await repository.save_user(
            User(
                username=username,
                email=f"{username}@example.org",
                first_name=username.title(),
                password_hash=hasher.hash(password),
                root=root,
            )
        )

    return _make_user


@pytest.fixture
def make_account(repository):
    async def _make_account(subdomain: str = "acme"):
        return await repository.save_account(
            Account(subdomain=subdomain, acct_name=f"{subdomain.title()} Account", org_name="Acme Org")
        )

    return _make_account


@pytest.fixture
def give_role(repository):
    async def _give_role(account: Account, user: User, role: Role):
        return await repository.save_rights(
            AccountRights(account_id=account.id, user_id=user.id, roles=account_role_set([role]))
        )

    return _give_role


@pytest.fixture
def as_principal():
    return principal_for
