"""Session resolution: from an HTTP request to the calling Identity."""

import logging
from typing import Protocol, runtime_checkable

from starlette.requests import Request

from dancehub.auth.jwt_service import JWTError, JWTService
from dancehub.auth.types import DEFAULT_ROLE, Identity
from dancehub.persistence import DocumentStore

logger = logging.getLogger(__name__)

SESSION_COOKIE = "dancehub_session"


@runtime_checkable
class SessionResolver(Protocol):
    """Resolves the caller of a request, or None when anonymous."""

    async def resolve(self, request: Request) -> Identity | None: ...


class TokenSessionResolver:
    """Resolves identities from signed session tokens.

    The token is read from the session cookie, falling back to an
    ``Authorization: Bearer`` header. The role is always taken from the
    stored user record so that role changes apply without a new sign-in.
    """

    def __init__(
        self,
        jwt_service: JWTService,
        store: DocumentStore,
        cookie_name: str = SESSION_COOKIE,
        users_collection: str = "users",
    ):
        self._jwt_service = jwt_service
        self._store = store
        self._cookie_name = cookie_name
        self._users_collection = users_collection

    def extract_token(self, request: Request) -> str | None:
        token = request.cookies.get(self._cookie_name)
        if token:
            return token

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:]  # Remove "Bearer " prefix

        return None

    async def resolve(self, request: Request) -> Identity | None:
        token = self.extract_token(request)
        if not token:
            return None

        try:
            claims = self._jwt_service.decode_token(token)
        except JWTError as e:
            logger.debug("Ignoring session token: %s", e)
            return None

        # Only accept access tokens
        if claims.type != "access" or not claims.user_id:
            return None

        user = self._store.get(self._users_collection, claims.user_id)
        if user is None or user.get("status") == "inactive":
            return None

        return Identity(
            subject=user["id"],
            role=user.get("role") or DEFAULT_ROLE,
            name=user.get("name"),
            email=user.get("email"),
        )


async def resolve_identity(request: Request, resolver: SessionResolver) -> Identity | None:
    """Return the request's identity, resolving it at most once per request.

    AuthMiddleware fills ``request.state.identity`` up front; routes it
    skipped resolve lazily here.
    """
    if hasattr(request.state, "identity"):
        return request.state.identity

    identity = await resolver.resolve(request)
    request.state.identity = identity
    return identity
