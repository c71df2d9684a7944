"""Helpers shared by the feature hooks."""

from datetime import datetime, timezone
from typing import Any

from dancehub.auth.types import Identity
from dancehub.crud.errors import Forbidden, NotFound, Unauthorized
from dancehub.persistence import DocumentStore


def timestamp() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def load_owned(
    store: DocumentStore,
    collection: str,
    id: str,
    identity: Identity | None,
    owner_field: str,
) -> dict[str, Any]:
    """Load a record the caller owns, or any record for an admin.

    Raises:
        Unauthorized: Anonymous caller
        NotFound: No such record
        Forbidden: Caller is neither the owner nor an admin
    """
    if identity is None:
        raise Unauthorized()

    record = store.get(collection, id)
    if record is None:
        raise NotFound()

    if not identity.is_admin and record.get(owner_field) != identity.subject:
        raise Forbidden()

    return record
