"""Password hashing backed by passlib."""

from passlib.context import CryptContext


class PasswordHasher:
    """Hashes new passwords with argon2 and still verifies legacy bcrypt hashes."""

    def __init__(self, schemes: tuple = ("argon2", "bcrypt")) -> None:
        self._context = CryptContext(schemes=list(schemes), deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Unrecognised or malformed hash.
            return False

    def dummy_verify(self) -> None:
        """Spend the same effort as a real verification for unknown accounts."""
        self._context.dummy_verify()

    def needs_update(self, password_hash: str) -> bool:
        return self._context.needs_update(password_hash)
