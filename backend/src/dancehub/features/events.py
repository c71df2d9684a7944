"""Event routes.

Each event embeds a copy of its location under ``location``; the
locations feature keeps those copies current.
"""

from typing import Any

from dancehub.auth.types import Identity
from dancehub.crud.config import EntityConfig
from dancehub.crud.errors import DomainError
from dancehub.features.common import load_owned, timestamp
from dancehub.features.schemas import EVENT_SCHEMA
from dancehub.persistence import DocumentStore

EVENT_ROLES = frozenset({"admin", "organizer", "visitor"})


def _load_location(store: DocumentStore, location_id: str) -> dict[str, Any]:
    location = store.get("locations", location_id)
    if location is None:
        raise DomainError(f"Location '{location_id}' not found")
    return location


def events_config(store: DocumentStore) -> EntityConfig:
    """Build the events configuration bound to a store."""

    async def before_create(data: dict[str, Any], identity: Identity | None) -> dict[str, Any]:
        location = _load_location(store, data["locationId"])
        now = timestamp()
        return {
            **data,
            "location": location,
            "createdById": identity.subject if identity else None,
            "createdAt": now,
            "updatedAt": now,
        }

    async def before_update(
        data: dict[str, Any], identity: Identity | None, id: str
    ) -> dict[str, Any]:
        event = load_owned(store, "events", id, identity, "createdById")

        if "type" in data and data["type"] != event.get("type"):
            raise DomainError("Event type cannot be changed")

        # The patched record must still be a valid event of its own type
        fields = EVENT_SCHEMA.field_names
        merged = {k: v for k, v in event.items() if k in fields}
        merged.update(data)
        EVENT_SCHEMA.validate_full(merged)

        changes = dict(data)
        location_id = changes.get("locationId")
        if location_id and location_id != event.get("locationId"):
            changes["location"] = _load_location(store, location_id)
        changes["updatedAt"] = timestamp()
        return changes

    async def before_delete(identity: Identity | None, id: str) -> bool:
        load_owned(store, "events", id, identity, "createdById")
        return True

    return EntityConfig(
        entity="events",
        schema=EVENT_SCHEMA,
        auth=True,
        roles=EVENT_ROLES,
        sort=(("time", 1),),
        before_create=before_create,
        before_update=before_update,
        before_delete=before_delete,
        param_name="eventId",
    )
