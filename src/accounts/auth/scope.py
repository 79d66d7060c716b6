from enum import Enum

from accounts.auth.context import AuthContext
from accounts.auth.roles import dominates, highest_role
from accounts.auth.rules import Scope, SecuredRule


class Decision(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


def _decision(allowed: bool) -> Decision:
    return Decision.ALLOW if allowed else Decision.DENY


def _caller_satisfies_role(rule: SecuredRule, ctx: AuthContext) -> bool:
    return any(dominates(role, rule.role) for role in ctx.effective_caller_roles)


def _is_self_id(ctx: AuthContext) -> bool:
    return ctx.caller_id is not None and ctx.caller_id == ctx.target_user_id


def _is_self_name(ctx: AuthContext) -> bool:
    return (
        ctx.caller_username is not None
        and ctx.caller_username == ctx.target_username
    )


def _is_account_member(ctx: AuthContext) -> bool:
    return ctx.account_id is not None and bool(ctx.caller_account_roles)


def _peer_within_caller_level(ctx: AuthContext) -> bool:
    if not _is_account_member(ctx) or ctx.target_user_id is None:
        return False

    caller_level = highest_role(ctx.caller_account_roles)
    peer_level = highest_role(ctx.target_account_roles)

    # a peer holding nothing on the account cannot outrank anyone
    return peer_level is None or dominates(caller_level, peer_level)


def _proposed_within_caller_level(ctx: AuthContext) -> bool:
    if ctx.proposed_roles is None:
        return False

    caller_level = highest_role(ctx.caller_account_roles)
    return all(dominates(caller_level, role) for role in ctx.proposed_roles)


def evaluate(rule: SecuredRule, ctx: AuthContext) -> Decision:
    """Decide whether ``ctx`` satisfies ``rule``.

    Missing context never raises: whatever a scope needs but the context
    lacks results in DENY.
    """
    if not _caller_satisfies_role(rule, ctx):
        return Decision.DENY

    if rule.scope == Scope.ANY:
        return Decision.ALLOW

    if rule.scope == Scope.SELF_ID:
        return _decision(_is_self_id(ctx))

    if rule.scope == Scope.SELF_NAME:
        return _decision(_is_self_name(ctx))

    if rule.scope == Scope.SELF_ACCT:
        return _decision(_is_account_member(ctx))

    if rule.scope == Scope.SELF_ACCT_PEER:
        return _decision(_peer_within_caller_level(ctx))

    if rule.scope == Scope.SELF_ACCT_PEER_UPDATE:
        return _decision(
            _peer_within_caller_level(ctx) and _proposed_within_caller_level(ctx)
        )

    return Decision.DENY
