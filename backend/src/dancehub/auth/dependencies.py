"""FastAPI dependencies for authentication."""

from collections.abc import Callable

from fastapi import Depends, Request

from dancehub.auth.resolver import resolve_identity
from dancehub.auth.types import Identity
from dancehub.crud.errors import Forbidden, Unauthorized


async def get_identity(request: Request) -> Identity | None:
    """Dependency returning the caller's identity, or None if anonymous.

    This is a soft dependency. Use require_identity for routes that need
    a signed-in caller.
    """
    return await resolve_identity(request, request.app.state.resolver)


async def require_identity(
    identity: Identity | None = Depends(get_identity),
) -> Identity:
    """Dependency that requires a signed-in caller.

    Raises:
        Unauthorized: If the request has no valid session
    """
    if identity is None:
        raise Unauthorized("Authentication required")
    return identity


def require_role(*roles: str) -> Callable[..., Identity]:
    """Create a dependency that requires one of the given roles.

    Example:
        @router.get("/admin-only")
        async def endpoint(identity: Identity = Depends(require_role("admin"))):
            ...
    """

    async def dependency(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role not in roles:
            raise Forbidden(f"Insufficient permissions. Required roles: {', '.join(roles)}")
        return identity

    return dependency
