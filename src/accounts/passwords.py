from typing import Protocol

from passlib.context import CryptContext

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, password_hash: str) -> bool: ...


class CryptContextPasswordHasher:
    """PasswordHasher backed by a passlib CryptContext (bcrypt by default)."""

    def __init__(self, context: CryptContext = pwd_context):
        self.context = context

    def hash(self, password: str) -> str:
        return self.context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False

        try:
            return self.context.verify(password, password_hash)
        except ValueError:
            # not a hash this context recognises
            return False
