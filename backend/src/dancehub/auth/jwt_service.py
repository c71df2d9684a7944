"""JWT session token generation and validation service."""

import time

import jwt

from dancehub.auth.types import TokenClaims


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid or malformed."""

    pass


class JWTService:
    """Service for generating and validating session tokens.

    Uses HS256 algorithm with a shared secret key.
    """

    # Session lifetime, matches the session cookie max-age
    ACCESS_TOKEN_TTL = 7 * 24 * 60 * 60  # 7 days

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        """Initialize the JWT service.

        Args:
            secret_key: Secret key for signing tokens (should be at least 32 chars)
            algorithm: JWT algorithm (default HS256)
        """
        self._secret_key = secret_key
        self._algorithm = algorithm

    def generate_access_token(self, user_id: str, role: str | None = None) -> str:
        """Generate a signed access token for a user.

        The role is informational; resolvers refresh it from the stored
        user record on every request.
        """
        now = int(time.time())

        claims = {
            "sub": user_id,
            "iat": now,
            "exp": now + self.ACCESS_TOKEN_TTL,
            "type": "access",
        }
        if role:
            claims["role"] = role

        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenClaims:
        """Decode and validate a JWT token.

        Args:
            token: The JWT token string

        Returns:
            TokenClaims with the decoded claims

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        return TokenClaims(
            user_id=payload.get("sub", ""),
            role=payload.get("role"),
            exp=payload.get("exp", 0),
            iat=payload.get("iat", 0),
            type=payload.get("type", "access"),
        )
