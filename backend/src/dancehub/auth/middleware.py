"""Authentication middleware for FastAPI."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from dancehub.auth.resolver import SessionResolver
from dancehub.crud.errors import Internal
from dancehub.crud.responses import error_response

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the caller and stores it on the request.

    Sets ``request.state.identity`` to an Identity, or None when the
    request carries no valid session. The middleware does NOT reject
    anonymous requests; that is decided per route.

    If resolution itself fails (e.g. the user store is down), the request
    is answered with the Internal error envelope.
    """

    SKIP_PATHS = ("/docs", "/openapi.json", "/redoc", "/api/health")

    def __init__(self, app, resolver: SessionResolver):
        super().__init__(app)
        self._resolver = resolver

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.SKIP_PATHS):
            try:
                request.state.identity = await self._resolver.resolve(request)
            except Exception:
                logger.exception(
                    "Identity resolution failed for %s %s", request.method, request.url.path
                )
                return error_response(Internal()).to_json_response()

        return await call_next(request)
