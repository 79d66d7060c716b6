from accounts.auth.models import ANONYMOUS, Principal, TokenResponse
from accounts.auth.roles import Role, dominates, implied_set
from accounts.auth.rules import Scope, SecuredRule

__all__ = [
    "ANONYMOUS",
    "Principal",
    "TokenResponse",
    "Role",
    "dominates",
    "implied_set",
    "Scope",
    "SecuredRule",
]
