from enum import Enum
from typing import Dict, Iterable, Mapping, Tuple

from pydantic import BaseModel, ConfigDict

from accounts.auth.roles import Role
from accounts.errors import RuleFormatError

RULE_DELIMITER = ","
ROLE_PREFIX = "role:"
SCOPE_PREFIX = "scope:"


class Scope(str, Enum):
    # any user or account
    ANY = "ANY"
    # the calling user's own profile, by id
    SELF_ID = "SELF_ID"
    # the calling user's own profile, by username
    SELF_NAME = "SELF_NAME"
    # accounts on which the calling user holds rights
    SELF_ACCT = "SELF_ACCT"
    # as SELF_ACCT, and the peer's current rights are <= the caller's
    SELF_ACCT_PEER = "SELF_ACCT_PEER"
    # as SELF_ACCT_PEER, and the peer's proposed rights are <= the caller's
    SELF_ACCT_PEER_UPDATE = "SELF_ACCT_PEER_UPDATE"


def _invalid(message: str) -> RuleFormatError:
    return RuleFormatError(f"Invalid rule: {message}")


class SecuredRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    scope: Scope

    @classmethod
    def parse(cls, rule: str) -> "SecuredRule":
        """Parse the textual form ``role:<ROLE>,scope:<SCOPE>``.

        Enumerant names are case sensitive. Whitespace around each token is
        ignored, so ``"role:ROLE_ADMIN, scope:ANY"`` is accepted.
        """
        if rule is None:
            raise _invalid("arg rule may not be null.")

        tokens = [t.strip() for t in rule.split(RULE_DELIMITER) if t.strip()]
        if len(tokens) != 2:
            raise _invalid(f"There must be two tokens. {rule}")

        full_role, full_scope = tokens
        if not full_role.startswith(ROLE_PREFIX):
            raise _invalid(f"Role must begin with {ROLE_PREFIX}, {rule}")

        if not full_scope.startswith(SCOPE_PREFIX):
            raise _invalid(f"Scope must begin with {SCOPE_PREFIX}, {rule}")

        role_name = full_role[len(ROLE_PREFIX):]
        scope_name = full_scope[len(SCOPE_PREFIX):]

        try:
            role = Role(role_name)
        except ValueError:
            raise _invalid(f"Unknown role '{role_name}', {rule}")

        try:
            scope = Scope(scope_name)
        except ValueError:
            raise _invalid(f"Unknown scope '{scope_name}', {rule}")

        return cls(role=role, scope=scope)

    def __str__(self) -> str:
        return f"{ROLE_PREFIX}{self.role.value}{RULE_DELIMITER}{SCOPE_PREFIX}{self.scope.value}"


def parse_rules(rules: Iterable[str]) -> Tuple[SecuredRule, ...]:
    if isinstance(rules, str):
        rules = [rules]
    return tuple(SecuredRule.parse(rule) for rule in rules)


def parse_rule_table(
    table: Mapping[str, Iterable[str]],
) -> Dict[str, Tuple[SecuredRule, ...]]:
    """Parse an operation -> rule texts table, failing on the first bad entry."""
    parsed = {}
    for operation, rules in table.items():
        try:
            parsed[operation] = parse_rules(rules)
        except RuleFormatError as e:
            raise RuleFormatError(f"{e} (operation: {operation})") from e

        if not parsed[operation]:
            raise _invalid(f"operation '{operation}' declares no rules")

    return parsed
