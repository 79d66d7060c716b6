from typing import Iterable, List


class AccountManagementError(Exception):
    """Base class for every error raised by the account management core."""


class RuleFormatError(AccountManagementError, ValueError):
    """A secured rule is not of the form ``role:<ROLE>,scope:<SCOPE>``."""


class AuthorizationDenied(AccountManagementError):
    def __init__(self, operation: str, message: str | None = None):
        self.operation = operation
        super().__init__(message or f"Access denied for operation: {operation}")


class InvalidRedemptionCode(AccountManagementError):
    def __init__(self, code: str):
        self.code = code
        super().__init__("The redemption code is invalid or has expired")


class CodeGenerationExhausted(AccountManagementError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Unable to generate a unique redemption code after {attempts} attempts"
        )


class DuplicateRedemptionCode(AccountManagementError):
    pass


class DeliveryFailed(AccountManagementError):
    pass


class UnsentInvitation(AccountManagementError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Unable to send invitation to: {email}")


class InvalidEmailAddresses(AccountManagementError, ValueError):
    def __init__(self, addresses: Iterable[str]):
        self.addresses: List[str] = list(addresses)
        super().__init__(
            f"Invalid email address(es): {', '.join(self.addresses)}"
        )


class NotFound(AccountManagementError):
    pass


class StorageUnavailable(AccountManagementError):
    pass


class InvalidUsername(AccountManagementError, ValueError):
    def __init__(self, username: str, message: str | None = None):
        self.username = username
        super().__init__(
            message
            or (
                f'The username "{username}" is invalid. Usernames must contain only '
                "lowercase letters, numbers, '-', '_', '.', and start and end "
                "with a letter or number."
            )
        )


class ReservedUsername(InvalidUsername):
    def __init__(self, username: str):
        super().__init__(
            username, f'"{username}" is a reserved name. Please choose another username.'
        )


class ReservedPrefix(InvalidUsername):
    def __init__(self, username: str, prefix: str):
        super().__init__(
            username,
            f'Usernames may not be prefixed by "{prefix}". Please choose another username.',
        )


class UserAlreadyExists(AccountManagementError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"A user with the username '{username}' already exists")


class InvalidPassword(AccountManagementError):
    pass
