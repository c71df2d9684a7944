"""Configuration-driven CRUD operations and their HTTP routes.

CrudService runs the five operations against a DocumentStore under the
policy of one EntityConfig. CrudRouteGenerator exposes a CrudService as
a FastAPI router and turns every outcome into the response envelope.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from dancehub.auth.resolver import SessionResolver, resolve_identity
from dancehub.auth.types import Identity
from dancehub.crud.config import EntityConfig, T, apply_projection
from dancehub.crud.errors import (
    CrudError,
    DomainError,
    Forbidden,
    Internal,
    NotFound,
    Unauthorized,
    ValidationError,
    ValidationIssue,
)
from dancehub.crud.responses import error_response, success_response
from dancehub.persistence import DocumentStore, Filter
from dancehub.persistence.filters import and_, condition, eq

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# Largest OFFSET both stores accept (signed 64-bit)
MAX_OFFSET = 2**63 - 1
CONTAINS_SUFFIX = "__contains"
_PAGING_PARAMS = ("page", "limit")


class CrudService(Generic[T]):
    """The five CRUD operations for one entity.

    Each operation takes the resolved identity (or None) first and
    raises a CrudError subclass on failure. The service holds no
    request-scoped state.
    """

    def __init__(self, config: EntityConfig[T], store: DocumentStore):
        self.config = config
        self.store = store

    def authorize(self, identity: Identity | None) -> None:
        """Apply the auth and role gate shared by every operation."""
        if self.config.auth and identity is None:
            raise Unauthorized()
        if self.config.roles and (identity is None or identity.role not in self.config.roles):
            raise Forbidden()

    # =========================================================================
    # Reads
    # =========================================================================

    async def list(
        self, identity: Identity | None, params: Mapping[str, str]
    ) -> list[dict[str, Any]]:
        self.authorize(identity)

        filter = self._build_filter(params)
        if self.config.custom_filters is not None:
            filter = and_(filter, await self.config.custom_filters(identity, params))

        limit, offset = self._paging(params)
        sort = list(self.config.sort) if self.config.sort else None

        records = self.store.find(
            self.config.entity, filter, sort=sort, limit=limit, offset=offset
        )
        return [apply_projection(r, self.config.projection) for r in records]

    async def get_by_id(self, identity: Identity | None, id: str) -> dict[str, Any]:
        self.authorize(identity)

        record = self.store.get(self.config.entity, id)
        if record is None:
            raise NotFound()
        return apply_projection(record, self.config.projection)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, identity: Identity | None, payload: Any) -> dict[str, Any]:
        self.authorize(identity)

        data = self.config.schema.validate_full(payload)

        if self.config.before_create is not None:
            data = await self._run_before(
                "before_create", self.config.before_create, data, identity
            )

        record = self.store.insert_one(self.config.entity, dict(data))

        if self.config.after_create is not None:
            await self._run_after("after_create", self.config.after_create, record, identity)

        return apply_projection(record, self.config.projection)

    async def update(
        self, identity: Identity | None, id: str, payload: Any
    ) -> dict[str, Any]:
        self.authorize(identity)

        data = self.config.schema.validate_partial(payload)

        if self.config.before_update is not None:
            data = await self._run_before(
                "before_update", self.config.before_update, data, identity, id
            )

        if not self.store.update_one(self.config.entity, id, dict(data)):
            raise NotFound()

        if self.config.after_update is not None:
            await self._run_after("after_update", self.config.after_update, data, identity, id)

        return {"id": id}

    async def delete(self, identity: Identity | None, id: str) -> dict[str, Any]:
        self.authorize(identity)

        if self.config.before_delete is not None:
            allowed = await self._run_before(
                "before_delete", self.config.before_delete, identity, id
            )
            if not allowed:
                raise Forbidden("Cannot delete this document")

        if not self.store.delete_one(self.config.entity, id):
            raise NotFound()

        if self.config.after_delete is not None:
            await self._run_after("after_delete", self.config.after_delete, id, identity)

        return {"id": id}

    # =========================================================================
    # Helpers
    # =========================================================================

    def _build_filter(self, params: Mapping[str, str]) -> Filter | None:
        schema = self.config.schema
        fields = schema.field_names
        conditions: list[Filter] = []

        for key, raw in params.items():
            if key in _PAGING_PARAMS:
                continue
            if key.endswith(CONTAINS_SUFFIX):
                name = key[: -len(CONTAINS_SUFFIX)]
                if name in fields and not self.config.is_hidden(name):
                    conditions.append(condition(name, "contains", raw))
                continue
            if key in fields and not self.config.is_hidden(key):
                conditions.append(eq(key, schema.coerce_query_value(key, raw)))

        return and_(*conditions)

    @staticmethod
    def _paging(params: Mapping[str, str]) -> tuple[int | None, int]:
        if not any(p in params for p in _PAGING_PARAMS):
            return None, 0

        issues = []
        values = {}
        for name, default in (("page", 1), ("limit", DEFAULT_LIMIT)):
            raw = params.get(name)
            if raw is None:
                values[name] = default
                continue
            try:
                values[name] = int(raw)
            except ValueError:
                values[name] = 0
            if values[name] < 1:
                issues.append(ValidationIssue(path=name, message="Must be a positive integer"))

        if values["limit"] > MAX_LIMIT:
            issues.append(ValidationIssue(path="limit", message=f"Must be at most {MAX_LIMIT}"))
        elif not issues and (values["page"] - 1) * values["limit"] > MAX_OFFSET:
            issues.append(ValidationIssue(path="page", message="Page is out of range"))

        if issues:
            raise ValidationError(issues)

        limit = values["limit"]
        return limit, (values["page"] - 1) * limit

    async def _run_before(self, name: str, hook: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        try:
            return await hook(*args)
        except CrudError:
            raise
        except Exception as e:
            logger.warning("%s hook for '%s' rejected the request: %s", name, self.config.entity, e)
            raise DomainError(str(e) or None) from e

    async def _run_after(self, name: str, hook: Callable[..., Awaitable[Any]], *args: Any) -> None:
        # After-hooks never fail the operation
        try:
            await hook(*args)
        except Exception:
            logger.exception("%s hook for '%s' failed", name, self.config.entity)


class CrudRouteGenerator(Generic[T]):
    """Builds the list/get/create/update/delete routes for one entity.

    Routes:
        GET    <prefix>          list
        GET    <prefix>/{param}  get_by_id
        POST   <prefix>          create (201)
        PATCH  <prefix>/{param}  update
        DELETE <prefix>/{param}  delete
    """

    def __init__(
        self,
        config: EntityConfig[T],
        store: DocumentStore,
        resolver: SessionResolver,
    ):
        self.config = config
        self.service: CrudService[T] = CrudService(config, store)
        self._resolver = resolver

    def router(self) -> APIRouter:
        config = self.config
        service = self.service
        param = config.param_name
        item_path = "/{" + param + "}"

        router = APIRouter(
            prefix=config.route_prefix,
            tags=list(config.tags) or [config.entity],
        )

        @router.get("")
        async def list_records(request: Request) -> JSONResponse:
            params = dict(request.query_params)
            return await self._respond(request, lambda identity: service.list(identity, params))

        @router.get(item_path)
        async def get_record(request: Request) -> JSONResponse:
            id = request.path_params[param]
            return await self._respond(request, lambda identity: service.get_by_id(identity, id))

        @router.post("")
        async def create_record(request: Request) -> JSONResponse:
            async def run(identity):
                # Gate before parsing so anonymous callers never see validation details
                service.authorize(identity)
                return await service.create(identity, await _json_body(request))

            return await self._respond(request, run, status_code=201)

        @router.patch(item_path)
        async def update_record(request: Request) -> JSONResponse:
            id = request.path_params[param]

            async def run(identity):
                service.authorize(identity)
                return await service.update(identity, id, await _json_body(request))

            return await self._respond(request, run)

        @router.delete(item_path)
        async def delete_record(request: Request) -> JSONResponse:
            id = request.path_params[param]
            return await self._respond(request, lambda identity: service.delete(identity, id))

        return router

    async def _respond(
        self,
        request: Request,
        operation: Callable[[Identity | None], Awaitable[Any]],
        status_code: int = 200,
    ) -> JSONResponse:
        try:
            identity = await resolve_identity(request, self._resolver)
            data = await operation(identity)
        except CrudError as e:
            return error_response(e).to_json_response()
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            return error_response(Internal()).to_json_response()

        return success_response(data, status_code=status_code).to_json_response()


async def _json_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object."""
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError(
            [ValidationIssue(path="", message="Request body must be valid JSON")]
        )

    if not isinstance(payload, dict):
        raise ValidationError(
            [ValidationIssue(path="", message="Request body must be a JSON object")]
        )
    return payload
