"""Password hashing service using bcrypt."""

from passlib.context import CryptContext


class PasswordService:
    """Hashes and verifies passwords with passlib's bcrypt scheme."""

    def __init__(self, rounds: int = 12):
        """Initialize the password service.

        Args:
            rounds: bcrypt work factor (default 12; tests use the minimum of 4)
        """
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hash: str | None) -> bool:
        """Verify a password against a stored hash.

        A missing or malformed hash never matches.
        """
        if not hash:
            return False
        try:
            return self._context.verify(password, hash)
        except ValueError:
            return False
