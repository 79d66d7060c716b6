from functools import lru_cache

from accounts.auth.guard import AuthorizationGuard, get_default_guard
from accounts.db.sqlite import SqliteRepository
from accounts.invitations import InvitationLedger
from accounts.notifier import InvitationMessageFormatter, LoggingNotifier, Notifier
from accounts.passwords import CryptContextPasswordHasher, PasswordHasher
from accounts.rights import AccountRightsService
from accounts.settings import settings
from accounts.users import UserService


@lru_cache
def get_repository() -> SqliteRepository:
    return SqliteRepository(settings.db_path)


@lru_cache
def get_guard() -> AuthorizationGuard:
    # malformed rules fail here, at start-up, never per request
    return get_default_guard(settings.rules_file)


@lru_cache
def get_notifier() -> Notifier:
    return LoggingNotifier()


@lru_cache
def get_ledger() -> InvitationLedger:
    return InvitationLedger(
        get_repository(),
        get_notifier(),
        InvitationMessageFormatter(settings.app_url),
        validity_days=settings.invitation_validity_days,
    )


@lru_cache
def get_hasher() -> PasswordHasher:
    return CryptContextPasswordHasher()


@lru_cache
def get_rights_service() -> AccountRightsService:
    return AccountRightsService(get_repository(), get_guard(), get_ledger())


@lru_cache
def get_user_service() -> UserService:
    return UserService(get_repository(), get_guard(), get_ledger(), get_hasher())
