"""Tests for CrudService: the authorization gate, hooks and the five operations."""

from typing import Annotated
from unittest.mock import AsyncMock

import pytest
from pydantic import Field

from dancehub.auth.types import Identity
from dancehub.crud.config import EntityConfig, apply_projection
from dancehub.crud.errors import (
    DomainError,
    Forbidden,
    NotFound,
    Unauthorized,
    ValidationError,
)
from dancehub.crud.generator import MAX_LIMIT, MAX_OFFSET, CrudService
from dancehub.crud.schema import Document, EntitySchema
from dancehub.persistence.sqlite import SQLiteDocumentStore


class Item(Document):
    name: Annotated[str, Field(min_length=1)]
    qty: Annotated[int, Field(ge=0)] = 0
    color: str | None = None
    secret: str | None = None


ITEM_SCHEMA = EntitySchema.from_model(Item)

ADMIN = Identity(subject="admin-1", role="admin", name="Admin")
VISITOR = Identity(subject="visitor-1", role="visitor", name="Visitor")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store():
    s = SQLiteDocumentStore(":memory:")
    s.connect()
    yield s
    s.close()


def make_service(store, **overrides) -> CrudService:
    options = {"entity": "items", "schema": ITEM_SCHEMA}
    options.update(overrides)
    return CrudService(EntityConfig(**options), store)


# =============================================================================
# Authorization gate
# =============================================================================


class TestAuthorizationGate:
    @pytest.mark.asyncio
    async def test_auth_required_without_identity(self, store):
        before_create = AsyncMock(side_effect=lambda data, identity: data)
        service = make_service(store, auth=True, before_create=before_create)

        with pytest.raises(Unauthorized):
            await service.create(None, {"name": "a"})

        before_create.assert_not_called()
        assert store.count("items") == 0

    @pytest.mark.asyncio
    async def test_auth_required_applies_to_every_operation(self, store):
        service = make_service(store, auth=True)
        doc = store.insert_one("items", {"name": "a"})

        with pytest.raises(Unauthorized):
            await service.list(None, {})
        with pytest.raises(Unauthorized):
            await service.get_by_id(None, doc["id"])
        with pytest.raises(Unauthorized):
            await service.update(None, doc["id"], {"qty": 3})
        with pytest.raises(Unauthorized):
            await service.delete(None, doc["id"])

        assert store.get("items", doc["id"]) == doc

    @pytest.mark.asyncio
    async def test_role_outside_set_forbidden_for_every_operation(self, store):
        service = make_service(store, auth=True, roles={"admin"})
        doc = store.insert_one("items", {"name": "a"})

        with pytest.raises(Forbidden):
            await service.list(VISITOR, {})
        with pytest.raises(Forbidden):
            await service.get_by_id(VISITOR, doc["id"])
        with pytest.raises(Forbidden):
            await service.create(VISITOR, {"name": "b"})
        with pytest.raises(Forbidden):
            await service.update(VISITOR, doc["id"], {"qty": 3})
        with pytest.raises(Forbidden):
            await service.delete(VISITOR, doc["id"])

        assert store.count("items") == 1
        assert await service.get_by_id(ADMIN, doc["id"]) == doc

    @pytest.mark.asyncio
    async def test_anonymous_allowed_when_auth_off(self, store):
        before_create = AsyncMock(side_effect=lambda data, identity: data)
        service = make_service(store, before_create=before_create)

        record = await service.create(None, {"name": "a"})

        assert record["name"] == "a"
        before_create.assert_awaited_once()
        assert before_create.await_args.args[1] is None


# =============================================================================
# Create / read
# =============================================================================


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_then_get_returns_transformed_payload(self, store):
        async def before_create(data, identity):
            return {**data, "name": data["name"].upper(), "createdBy": identity.subject}

        service = make_service(
            store, before_create=before_create, projection={"secret": 0}
        )

        created = await service.create(ADMIN, {"name": "a", "qty": 2, "secret": "s3"})
        fetched = await service.get_by_id(ADMIN, created["id"])

        assert fetched == created
        assert fetched == {"id": created["id"], "name": "A", "qty": 2, "createdBy": "admin-1"}

    @pytest.mark.asyncio
    async def test_validation_short_circuits(self, store):
        before_create = AsyncMock()
        after_create = AsyncMock()
        service = make_service(store, before_create=before_create, after_create=after_create)

        with pytest.raises(ValidationError) as exc_info:
            await service.create(ADMIN, {"qty": -1})

        paths = {d["path"] for d in exc_info.value.details}
        assert paths == {"name", "qty"}
        before_create.assert_not_called()
        after_create.assert_not_called()
        assert store.count("items") == 0

    @pytest.mark.asyncio
    async def test_before_create_failure_aborts(self, store):
        async def before_create(data, identity):
            raise RuntimeError("no items today")

        service = make_service(store, before_create=before_create)

        with pytest.raises(DomainError, match="no items today"):
            await service.create(ADMIN, {"name": "a"})
        assert store.count("items") == 0

    @pytest.mark.asyncio
    async def test_before_create_taxonomy_error_propagates(self, store):
        async def before_create(data, identity):
            raise Forbidden("Only admins")

        service = make_service(store, before_create=before_create)

        with pytest.raises(Forbidden, match="Only admins"):
            await service.create(VISITOR, {"name": "a"})

    @pytest.mark.asyncio
    async def test_after_create_failure_is_logged(self, store, caplog):
        async def after_create(record, identity):
            raise RuntimeError("audit down")

        service = make_service(store, after_create=after_create)

        record = await service.create(ADMIN, {"name": "a"})

        assert store.get("items", record["id"]) is not None
        assert "after_create hook for 'items' failed" in caplog.text

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(NotFound, match="Document not found"):
            await make_service(store).get_by_id(ADMIN, "nope")


# =============================================================================
# List
# =============================================================================


class TestList:
    @pytest.fixture
    def seeded(self, store):
        for name, qty, color in [("b", 1, "red"), ("a", 5, "blue"), ("c", 3, "dark red")]:
            store.insert_one("items", {"name": name, "qty": qty, "color": color, "secret": "x"})
        return store

    @pytest.mark.asyncio
    async def test_default_insertion_order(self, seeded):
        result = await make_service(seeded).list(ADMIN, {})
        assert [r["name"] for r in result] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_sort(self, seeded):
        service = make_service(seeded, sort=[("qty", -1)])
        assert [r["name"] for r in await service.list(ADMIN, {})] == ["a", "c", "b"]

    @pytest.mark.asyncio
    async def test_equality_filter_with_coercion(self, seeded):
        result = await make_service(seeded).list(ADMIN, {"qty": "5"})
        assert [r["name"] for r in result] == ["a"]

    @pytest.mark.asyncio
    async def test_contains_filter(self, seeded):
        result = await make_service(seeded).list(ADMIN, {"color__contains": "red"})
        assert [r["name"] for r in result] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_unknown_params_ignored(self, seeded):
        result = await make_service(seeded).list(ADMIN, {"bogus": "1"})
        assert len(result) == 3

    @pytest.mark.asyncio
    async def test_hidden_fields_not_filterable(self, seeded):
        service = make_service(seeded, projection={"secret": 0})
        result = await service.list(ADMIN, {"secret": "nomatch"})
        assert len(result) == 3
        assert all("secret" not in r for r in result)

    @pytest.mark.asyncio
    async def test_custom_filters_anded(self, seeded):
        async def only_cheap(identity, params):
            return {"field": "qty", "operator": "lt", "value": 4}

        service = make_service(seeded, custom_filters=only_cheap)
        result = await service.list(ADMIN, {"color__contains": "red"})
        assert [r["name"] for r in result] == ["b", "c"]

        result = await service.list(ADMIN, {"name": "a"})
        assert result == []

    @pytest.mark.asyncio
    async def test_custom_filters_receive_identity_and_params(self, seeded):
        custom = AsyncMock(return_value=None)
        await make_service(seeded, custom_filters=custom).list(VISITOR, {"name": "a"})
        custom.assert_awaited_once_with(VISITOR, {"name": "a"})

    @pytest.mark.asyncio
    async def test_pagination(self, seeded):
        service = make_service(seeded, sort=[("name", 1)])
        page = await service.list(ADMIN, {"page": "2", "limit": "2"})
        assert [r["name"] for r in page] == ["c"]

    @pytest.mark.asyncio
    async def test_pagination_default_limit(self, seeded):
        for i in range(25):
            seeded.insert_one("items", {"name": f"bulk{i}"})
        service = make_service(seeded)
        assert len(await service.list(ADMIN, {"page": "1"})) == 20
        assert len(await service.list(ADMIN, {})) == 28

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{"page": "0"}, {"limit": "-1"}, {"page": "x"}])
    async def test_pagination_rejects_bad_values(self, seeded, params):
        with pytest.raises(ValidationError):
            await make_service(seeded).list(ADMIN, params)

    @pytest.mark.asyncio
    async def test_pagination_limit_is_capped(self, seeded):
        with pytest.raises(ValidationError) as exc:
            await make_service(seeded).list(ADMIN, {"limit": str(MAX_LIMIT + 1)})
        assert [i.path for i in exc.value.issues] == ["limit"]

        assert len(await make_service(seeded).list(ADMIN, {"limit": str(MAX_LIMIT)})) == 3

    @pytest.mark.asyncio
    async def test_pagination_huge_page_is_rejected(self, seeded):
        with pytest.raises(ValidationError) as exc:
            await make_service(seeded).list(ADMIN, {"page": str(10**18), "limit": "100"})
        assert [i.path for i in exc.value.issues] == ["page"]

    @pytest.mark.asyncio
    async def test_pagination_last_valid_page_returns_empty(self, seeded):
        page = str(MAX_OFFSET // MAX_LIMIT + 1)
        assert await make_service(seeded).list(ADMIN, {"page": page, "limit": str(MAX_LIMIT)}) == []

    @pytest.mark.asyncio
    async def test_projection(self, seeded):
        service = make_service(seeded, projection={"name": 1})
        result = await service.list(ADMIN, {})
        assert all(set(r) == {"id", "name"} for r in result)


# =============================================================================
# Update
# =============================================================================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self, store):
        doc = store.insert_one("items", {"name": "a", "qty": 1, "color": "red"})
        service = make_service(store)

        result = await service.update(ADMIN, doc["id"], {"qty": 7})

        assert result == {"id": doc["id"]}
        assert store.get("items", doc["id"]) == {**doc, "qty": 7}

    @pytest.mark.asyncio
    async def test_update_missing_record(self, store):
        with pytest.raises(NotFound):
            await make_service(store).update(ADMIN, "nope", {"qty": 1})

    @pytest.mark.asyncio
    async def test_update_missing_record_after_hooks_ran(self, store):
        before_update = AsyncMock(side_effect=lambda data, identity, id: data)
        service = make_service(store, before_update=before_update)

        with pytest.raises(NotFound):
            await service.update(ADMIN, "nope", {"qty": 1})
        before_update.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_validation(self, store):
        doc = store.insert_one("items", {"name": "a"})
        before_update = AsyncMock()
        service = make_service(store, before_update=before_update)

        with pytest.raises(ValidationError):
            await service.update(ADMIN, doc["id"], {"qty": -5})
        with pytest.raises(ValidationError):
            await service.update(ADMIN, doc["id"], {"unknown": 1})

        before_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_before_update_transforms_payload(self, store):
        doc = store.insert_one("items", {"name": "a"})

        async def before_update(data, identity, id):
            return {**data, "updatedBy": identity.subject}

        await make_service(store, before_update=before_update).update(
            ADMIN, doc["id"], {"name": "b"}
        )

        assert store.get("items", doc["id"])["updatedBy"] == "admin-1"

    @pytest.mark.asyncio
    async def test_before_update_veto_prevents_write(self, store):
        doc = store.insert_one("items", {"name": "a"})

        async def before_update(data, identity, id):
            raise Forbidden()

        with pytest.raises(Forbidden):
            await make_service(store, before_update=before_update).update(
                VISITOR, doc["id"], {"name": "b"}
            )
        assert store.get("items", doc["id"])["name"] == "a"

    @pytest.mark.asyncio
    async def test_failing_after_update_does_not_fail_update(self, store):
        doc = store.insert_one("items", {"name": "a"})

        async def after_update(data, identity, id):
            raise RuntimeError("boom")

        service = make_service(store, after_update=after_update)

        assert await service.update(ADMIN, doc["id"], {"name": "b"}) == {"id": doc["id"]}
        assert (await service.get_by_id(ADMIN, doc["id"]))["name"] == "b"

    @pytest.mark.asyncio
    async def test_after_update_receives_final_payload(self, store):
        doc = store.insert_one("items", {"name": "a"})
        after_update = AsyncMock()

        async def before_update(data, identity, id):
            return {**data, "stamp": 1}

        service = make_service(store, before_update=before_update, after_update=after_update)
        await service.update(ADMIN, doc["id"], {"name": "b"})

        after_update.assert_awaited_once_with({"name": "b", "stamp": 1}, ADMIN, doc["id"])


# =============================================================================
# Delete
# =============================================================================


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_twice(self, store):
        doc = store.insert_one("items", {"name": "a"})
        service = make_service(store)

        assert await service.delete(ADMIN, doc["id"]) == {"id": doc["id"]}
        with pytest.raises(NotFound):
            await service.delete(ADMIN, doc["id"])

    @pytest.mark.asyncio
    async def test_falsy_before_delete_forbids(self, store):
        doc = store.insert_one("items", {"name": "a"})
        service = make_service(store, before_delete=AsyncMock(return_value=False))

        with pytest.raises(Forbidden, match="Cannot delete this document"):
            await service.delete(ADMIN, doc["id"])
        assert store.get("items", doc["id"]) is not None

    @pytest.mark.asyncio
    async def test_raising_before_delete_propagates(self, store):
        doc = store.insert_one("items", {"name": "a"})
        service = make_service(store, before_delete=AsyncMock(side_effect=Forbidden("Nope")))

        with pytest.raises(Forbidden, match="Nope"):
            await service.delete(ADMIN, doc["id"])

    @pytest.mark.asyncio
    async def test_after_delete_called_with_id_and_identity(self, store):
        doc = store.insert_one("items", {"name": "a"})
        after_delete = AsyncMock()
        service = make_service(
            store, before_delete=AsyncMock(return_value=True), after_delete=after_delete
        )

        await service.delete(ADMIN, doc["id"])

        after_delete.assert_awaited_once_with(doc["id"], ADMIN)


# =============================================================================
# Configuration
# =============================================================================


class TestEntityConfig:
    def test_default_prefix(self):
        assert EntityConfig(entity="items", schema=ITEM_SCHEMA).route_prefix == "/api/items"
        config = EntityConfig(entity="tags", schema=ITEM_SCHEMA, prefix="/api/x/tags")
        assert config.route_prefix == "/api/x/tags"

    def test_frozen(self):
        config = EntityConfig(entity="items", schema=ITEM_SCHEMA)
        with pytest.raises(AttributeError):
            config.auth = True

    def test_roles_frozen(self):
        config = EntityConfig(entity="items", schema=ITEM_SCHEMA, roles=["admin", "admin"])
        assert config.roles == frozenset({"admin"})

    def test_projection_rejects_mixing(self):
        with pytest.raises(ValueError):
            EntityConfig(entity="items", schema=ITEM_SCHEMA, projection={"a": 1, "b": 0})

    def test_apply_projection(self):
        record = {"id": "1", "name": "a", "secret": "s"}
        assert apply_projection(record, {"secret": 0}) == {"id": "1", "name": "a"}
        assert apply_projection(record, {"name": 1}) == {"id": "1", "name": "a"}
        assert apply_projection(record, {"name": 1, "id": 0}) == {"name": "a"}
        assert apply_projection(record, None) is record

