import json
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from accounts.auth.constants import OPERATION_RULES
from accounts.auth.context import AuthContext
from accounts.auth.rules import SecuredRule, parse_rule_table
from accounts.auth.scope import Decision, evaluate
from accounts.errors import AuthorizationDenied, RuleFormatError
from accounts.utils.logging import logger


def decide(rules: Iterable[SecuredRule], ctx: AuthContext) -> Decision:
    """ALLOW if any rule allows, DENY if every rule (or no rule) denies."""
    for rule in rules:
        if evaluate(rule, ctx) == Decision.ALLOW:
            return Decision.ALLOW
    return Decision.DENY


def authorize(
    rules: Sequence[SecuredRule], ctx: AuthContext, operation: str = "operation"
) -> None:
    """Raise AuthorizationDenied unless one of ``rules`` is satisfied."""
    if decide(rules, ctx) == Decision.DENY:
        logger.info(
            f"Denied {operation} for caller={ctx.caller_id} "
            f"account={ctx.account_id} target={ctx.target_user_id or ctx.target_username}"
        )
        raise AuthorizationDenied(operation)


class AuthorizationGuard:
    """Enforcement point for every privileged operation.

    Holds an immutable operation -> rules table; safe to share between
    concurrent requests.
    """

    def __init__(self, rule_table: Mapping[str, Tuple[SecuredRule, ...]]):
        self._rules: Dict[str, Tuple[SecuredRule, ...]] = dict(rule_table)

    @classmethod
    def from_text(cls, table: Mapping[str, Iterable[str]]) -> "AuthorizationGuard":
        return cls(parse_rule_table(table))

    @classmethod
    def from_file(cls, path: str) -> "AuthorizationGuard":
        """Load the operation -> rules table from a JSON file.

        Operations the file does not mention keep their default rules.
        """
        try:
            with open(path, encoding="utf-8") as f:
                overrides = json.load(f)
        except json.JSONDecodeError as e:
            raise RuleFormatError(f"Invalid rules file {path}: {e}") from e

        if not isinstance(overrides, dict):
            raise RuleFormatError(f"Invalid rules file {path}: expected an object")

        return cls.from_text({**OPERATION_RULES, **overrides})

    def rules_for(self, operation: str) -> Tuple[SecuredRule, ...]:
        return self._rules.get(operation, ())

    def check(self, operation: str, ctx: AuthContext) -> None:
        rules = self.rules_for(operation)
        if not rules:
            logger.warning(f"No secured rules declared for {operation}, denying")

        authorize(rules, ctx, operation)


def get_default_guard(rules_file: str | None = None) -> AuthorizationGuard:
    if rules_file:
        return AuthorizationGuard.from_file(rules_file)
    return AuthorizationGuard.from_text(OPERATION_RULES)
