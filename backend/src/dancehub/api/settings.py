"""Application settings read from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dancehub.auth.resolver import SESSION_COOKIE
from dancehub.persistence import DatabaseConfig

DEV_SECRET_KEY = "dev-secret-key-change-in-production"


def _flag(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Runtime configuration for the API.

    Attributes:
        database: Document store location
        secret_key: JWT signing key
        session_cookie: Name of the session cookie
        cookie_secure: Send the session cookie over HTTPS only
        cors_origins: Origins allowed to call the API with credentials
        imgbb_api_key: ImgBB key; uploads fall back to data URLs without it
        recaptcha_secret_key: reCAPTCHA secret; registration skips the check without it
        port: Port for the development server
        log_level: Root logging level
        bcrypt_rounds: bcrypt work factor for password hashes
    """

    database: DatabaseConfig
    secret_key: str = DEV_SECRET_KEY
    session_cookie: str = SESSION_COOKIE
    cookie_secure: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    imgbb_api_key: str | None = None
    recaptcha_secret_key: str | None = None
    port: int = 8000
    log_level: str = "INFO"
    bcrypt_rounds: int = 12

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> "Settings":
        """Create settings from DANCEHUB_* and provider environment variables."""
        origins = os.environ.get("DANCEHUB_CORS_ORIGINS", "http://localhost:3000")

        return cls(
            database=DatabaseConfig.from_env(base_path),
            secret_key=os.environ.get("DANCEHUB_SECRET_KEY", DEV_SECRET_KEY),
            session_cookie=os.environ.get("DANCEHUB_SESSION_COOKIE", SESSION_COOKIE),
            cookie_secure=_flag(os.environ.get("DANCEHUB_COOKIE_SECURE")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            imgbb_api_key=os.environ.get("IMGBB_API_KEY") or None,
            recaptcha_secret_key=os.environ.get("RECAPTCHA_SECRET_KEY") or None,
            port=int(os.environ.get("DANCEHUB_PORT", "8000")),
            log_level=os.environ.get("DANCEHUB_LOG_LEVEL", "INFO").upper(),
            bcrypt_rounds=int(os.environ.get("DANCEHUB_BCRYPT_ROUNDS", "12")),
        )
