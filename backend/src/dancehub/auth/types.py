"""Type definitions for authentication."""

from dataclasses import dataclass
from typing import Any

ROLES = ("visitor", "user", "organizer", "team", "admin")
DEFAULT_ROLE = "visitor"


@dataclass(frozen=True)
class Identity:
    """The resolved caller of a request.

    Attributes:
        subject: The authenticated user's ID
        role: The user's role (refreshed from the stored user record)
        name: Display name, when known
        email: Email address, when known
    """

    subject: str
    role: str = DEFAULT_ROLE
    name: str | None = None
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.subject,
            "role": self.role,
            "name": self.name,
            "email": self.email,
        }


@dataclass
class TokenClaims:
    """Claims embedded in a JWT token.

    Attributes:
        user_id: The authenticated user's ID
        role: The user's role at sign-in time
        exp: Token expiration timestamp
        iat: Token issued-at timestamp
        type: Token type ("access")
    """

    user_id: str
    role: str | None = None
    exp: int = 0
    iat: int = 0
    type: str = "access"
