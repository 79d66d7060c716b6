import pytest

from accounts.auth.context import AuthContext
from accounts.auth.roles import Role, account_role_set
from accounts.auth.rules import SecuredRule
from accounts.auth.scope import Decision, evaluate

USER = frozenset({Role.ROLE_USER})
ROOT = frozenset({Role.ROLE_USER, Role.ROLE_ROOT})
ADMIN_ROLES = account_role_set([Role.ROLE_ADMIN])
OWNER_ROLES = account_role_set([Role.ROLE_OWNER])
USER_ROLES = account_role_set([Role.ROLE_USER])


def rule(text):
    return SecuredRule.parse(text)


def member_context(caller_roles, target_roles=frozenset(), proposed=None, **kwargs):
    fields = dict(
        caller_id=1,
        caller_username="alice",
        caller_roles=USER,
        account_id=10,
        caller_account_roles=caller_roles,
        target_user_id=2,
        target_account_roles=target_roles,
        proposed_roles=proposed,
    )
    fields.update(kwargs)
    return AuthContext(**fields)


class TestRoleCheck:
    def test_user_does_not_satisfy_admin_rule(self):
        ctx = AuthContext(caller_id=1, caller_username="alice", caller_roles=USER)
        assert evaluate(rule("role:ROLE_ADMIN,scope:ANY"), ctx) == Decision.DENY

    def test_anonymous_rule_allows_everyone(self):
        assert evaluate(rule("role:ROLE_ANONYMOUS,scope:ANY"), AuthContext()) == Decision.ALLOW

    def test_anonymous_caller_fails_user_rule(self):
        assert evaluate(rule("role:ROLE_USER,scope:ANY"), AuthContext()) == Decision.DENY

    def test_root_authority_satisfies_everything(self):
        ctx = AuthContext(caller_id=1, caller_roles=ROOT)
        assert evaluate(rule("role:ROLE_ROOT,scope:ANY"), ctx) == Decision.ALLOW
        assert evaluate(rule("role:ROLE_OWNER,scope:ANY"), ctx) == Decision.ALLOW

    def test_account_roles_count_on_their_account(self):
        ctx = member_context(ADMIN_ROLES)
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT"), ctx) == Decision.ALLOW

    def test_roles_on_another_account_do_not_count(self):
        # admin elsewhere, no rights on account 10
        ctx = member_context(None)
        assert evaluate(rule("role:ROLE_ADMIN,scope:ANY"), ctx) == Decision.DENY


class TestSelfScopes:
    def test_self_id_allows_own_profile(self):
        ctx = AuthContext(caller_id=7, caller_roles=USER, target_user_id=7)
        assert evaluate(rule("role:ROLE_USER,scope:SELF_ID"), ctx) == Decision.ALLOW

    def test_self_id_denies_other_profile(self):
        ctx = AuthContext(caller_id=7, caller_roles=USER, target_user_id=8)
        assert evaluate(rule("role:ROLE_USER,scope:SELF_ID"), ctx) == Decision.DENY

    def test_self_id_denies_without_target(self):
        ctx = AuthContext(caller_id=7, caller_roles=USER)
        assert evaluate(rule("role:ROLE_USER,scope:SELF_ID"), ctx) == Decision.DENY

    def test_self_name(self):
        own = AuthContext(caller_id=7, caller_username="bob", caller_roles=USER, target_username="bob")
        other = own.model_copy(update={"target_username": "carol"})

        assert evaluate(rule("role:ROLE_USER,scope:SELF_NAME"), own) == Decision.ALLOW
        assert evaluate(rule("role:ROLE_USER,scope:SELF_NAME"), other) == Decision.DENY

    def test_self_acct_requires_rights_on_account(self):
        assert evaluate(rule("role:ROLE_USER,scope:SELF_ACCT"), member_context(USER_ROLES)) == Decision.ALLOW
        assert evaluate(rule("role:ROLE_USER,scope:SELF_ACCT"), member_context(None)) == Decision.DENY

    def test_self_acct_without_account_denies(self):
        ctx = member_context(USER_ROLES, account_id=None)
        assert evaluate(rule("role:ROLE_USER,scope:SELF_ACCT"), ctx) == Decision.DENY


class TestPeerScopes:
    @pytest.mark.parametrize(
        "target_roles, expected",
        [
            (USER_ROLES, Decision.ALLOW),
            (ADMIN_ROLES, Decision.ALLOW),
            (OWNER_ROLES, Decision.DENY),
            (frozenset(), Decision.ALLOW),
        ],
    )
    def test_admin_acting_on_peer(self, target_roles, expected):
        ctx = member_context(ADMIN_ROLES, target_roles)
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER"), ctx) == expected

    def test_peer_without_target_denies(self):
        ctx = member_context(ADMIN_ROLES, target_user_id=None)
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER"), ctx) == Decision.DENY

    def test_admin_may_grant_admin_to_admin(self):
        ctx = member_context(ADMIN_ROLES, ADMIN_ROLES, proposed=frozenset({Role.ROLE_ADMIN}))
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER_UPDATE"), ctx) == Decision.ALLOW

    def test_admin_may_not_grant_root(self):
        ctx = member_context(ADMIN_ROLES, ADMIN_ROLES, proposed=frozenset({Role.ROLE_ROOT}))
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER_UPDATE"), ctx) == Decision.DENY

    def test_admin_may_not_promote_to_owner(self):
        ctx = member_context(ADMIN_ROLES, USER_ROLES, proposed=frozenset({Role.ROLE_OWNER}))
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER_UPDATE"), ctx) == Decision.DENY

    def test_peer_update_without_proposed_roles_denies(self):
        ctx = member_context(ADMIN_ROLES, USER_ROLES, proposed=None)
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER_UPDATE"), ctx) == Decision.DENY

    def test_owner_may_demote_admin(self):
        ctx = member_context(OWNER_ROLES, ADMIN_ROLES, proposed=frozenset({Role.ROLE_USER}))
        assert evaluate(rule("role:ROLE_ADMIN,scope:SELF_ACCT_PEER_UPDATE"), ctx) == Decision.ALLOW
