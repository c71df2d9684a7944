"""Location routes, with propagation of location changes into events."""

import logging
from typing import Any

from dancehub.auth.types import Identity
from dancehub.crud.config import EntityConfig
from dancehub.features.common import timestamp
from dancehub.features.schemas import LOCATION_SCHEMA
from dancehub.persistence import DocumentStore
from dancehub.persistence.filters import eq

logger = logging.getLogger(__name__)


def locations_config(store: DocumentStore) -> EntityConfig:
    """Build the locations configuration bound to a store."""

    async def before_create(data: dict[str, Any], identity: Identity | None) -> dict[str, Any]:
        now = timestamp()
        return {**data, "createdAt": now, "updatedAt": now}

    async def before_update(
        data: dict[str, Any], identity: Identity | None, id: str
    ) -> dict[str, Any]:
        return {**data, "updatedAt": timestamp()}

    async def after_update(data: dict[str, Any], identity: Identity | None, id: str) -> None:
        # Refresh the copy embedded in every event at this location
        location = store.get("locations", id)
        if location is None:
            return
        count = store.update_many("events", eq("locationId", id), {"location": location})
        logger.info("Propagated location %s into %d event(s)", id, count)

    return EntityConfig(
        entity="locations",
        schema=LOCATION_SCHEMA,
        auth=True,
        roles=frozenset({"admin", "visitor"}),
        sort=(("name", 1),),
        before_create=before_create,
        before_update=before_update,
        after_update=after_update,
    )
