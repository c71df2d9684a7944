"""Authentication: session tokens, password hashing and identity resolution."""

from dancehub.auth.types import DEFAULT_ROLE, ROLES, Identity, TokenClaims
from dancehub.auth.password import PasswordService
from dancehub.auth.jwt_service import JWTService, JWTError
from dancehub.auth.resolver import (
    SESSION_COOKIE,
    SessionResolver,
    TokenSessionResolver,
    resolve_identity,
)
from dancehub.auth.middleware import AuthMiddleware
from dancehub.auth.dependencies import get_identity, require_identity, require_role

__all__ = [
    "DEFAULT_ROLE",
    "ROLES",
    "Identity",
    "TokenClaims",
    "PasswordService",
    "JWTService",
    "JWTError",
    "SESSION_COOKIE",
    "SessionResolver",
    "TokenSessionResolver",
    "resolve_identity",
    "AuthMiddleware",
    "get_identity",
    "require_identity",
    "require_role",
]
