"""Tag routes (admin only). Tag names are stored trimmed and lower-cased."""

from typing import Any

from dancehub.auth.types import Identity
from dancehub.crud.config import EntityConfig
from dancehub.crud.errors import Conflict
from dancehub.features.common import timestamp
from dancehub.features.schemas import TAG_SCHEMA
from dancehub.persistence import DocumentStore
from dancehub.persistence.filters import eq


def normalize_tag_name(name: str) -> str:
    return name.strip().lower()


def tags_config(store: DocumentStore) -> EntityConfig:
    """Build the tags configuration bound to a store."""

    def check_unique(name: str, id: str | None = None) -> None:
        existing = store.find_one("tags", eq("name", name))
        if existing is not None and existing["id"] != id:
            raise Conflict(f"Tag '{name}' already exists")

    async def before_create(data: dict[str, Any], identity: Identity | None) -> dict[str, Any]:
        name = normalize_tag_name(data["name"])
        check_unique(name)
        now = timestamp()
        return {**data, "name": name, "createdAt": now, "updatedAt": now}

    async def before_update(
        data: dict[str, Any], identity: Identity | None, id: str
    ) -> dict[str, Any]:
        changes = dict(data)
        if "name" in changes:
            changes["name"] = normalize_tag_name(changes["name"])
            check_unique(changes["name"], id)
        changes["updatedAt"] = timestamp()
        return changes

    return EntityConfig(
        entity="tags",
        schema=TAG_SCHEMA,
        auth=True,
        roles=frozenset({"admin"}),
        sort=(("name", 1),),
        before_create=before_create,
        before_update=before_update,
        prefix="/api/website-elements/tags",
    )
