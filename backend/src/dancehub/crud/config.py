"""Entity configuration for the CRUD route generator.

An EntityConfig is built once per route family and never mutated. All
entity-specific behaviour (ownership checks, timestamps, denormalised
copies, audit logging) lives in its hooks.

Hook signatures:
    before_create(payload, identity) -> payload
    before_update(payload, identity, id) -> payload
    before_delete(identity, id) -> bool
    after_create(record, identity) -> None
    after_update(payload, identity, id) -> None
    after_delete(id, identity) -> None
    custom_filters(identity, params) -> filter | None

Before-hooks may raise to veto the operation. After-hooks are best-effort:
their failures are logged and never reach the caller.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from dancehub.auth.types import Identity
from dancehub.crud.schema import EntitySchema
from dancehub.persistence import Filter

T = TypeVar("T", bound=Mapping[str, Any])

BeforeCreateHook = Callable[[T, Identity | None], Awaitable[T]]
BeforeUpdateHook = Callable[[T, Identity | None, str], Awaitable[T]]
BeforeDeleteHook = Callable[[Identity | None, str], Awaitable[bool]]
AfterCreateHook = Callable[[T, Identity | None], Awaitable[None]]
AfterUpdateHook = Callable[[T, Identity | None, str], Awaitable[None]]
AfterDeleteHook = Callable[[str, Identity | None], Awaitable[None]]
CustomFilters = Callable[[Identity | None, Mapping[str, str]], Awaitable[Filter | None]]


@dataclass(frozen=True)
class EntityConfig(Generic[T]):
    """Configuration of one CRUD route family.

    Attributes:
        entity: Collection name
        schema: Validation contract for create (full) and update (partial)
        auth: Every operation requires a resolved identity
        roles: Permitted roles; empty means no restriction beyond auth
        projection: Field -> 0/1 flags applied to read results
        sort: (field, 1 | -1) pairs applied to list results
        custom_filters: Extra list filter ANDed with caller filters
        param_name: Route parameter holding the record id
        prefix: URL prefix, defaults to /api/<entity>
    """

    entity: str
    schema: EntitySchema
    auth: bool = False
    roles: frozenset[str] = frozenset()
    projection: Mapping[str, int] | None = None
    sort: tuple[tuple[str, int], ...] | None = None
    custom_filters: CustomFilters | None = None
    before_create: BeforeCreateHook[T] | None = None
    before_update: BeforeUpdateHook[T] | None = None
    before_delete: BeforeDeleteHook | None = None
    after_create: AfterCreateHook[T] | None = None
    after_update: AfterUpdateHook[T] | None = None
    after_delete: AfterDeleteHook | None = None
    param_name: str = "id"
    prefix: str | None = None
    tags: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        # Freeze collection-typed attributes so callers can pass lists/dicts
        object.__setattr__(self, "roles", frozenset(self.roles))
        if self.sort is not None:
            object.__setattr__(self, "sort", tuple((f, int(d)) for f, d in self.sort))
        if self.projection is not None:
            flags = {k: int(v) for k, v in self.projection.items()}
            if any(v not in (0, 1) for v in flags.values()):
                raise ValueError("Projection flags must be 0 or 1")
            if len({v for k, v in flags.items() if k != "id"}) > 1:
                raise ValueError("Projection cannot mix inclusion and exclusion")
            object.__setattr__(self, "projection", MappingProxyType(flags))

    @property
    def route_prefix(self) -> str:
        return self.prefix or f"/api/{self.entity}"

    def is_hidden(self, field_name: str) -> bool:
        """Whether the projection keeps this field out of read results."""
        if not self.projection:
            return False
        if field_name in self.projection:
            return self.projection[field_name] == 0
        inclusive = any(v == 1 for k, v in self.projection.items() if k != "id")
        return inclusive and field_name != "id"


def apply_projection(
    record: dict[str, Any], projection: Mapping[str, int] | None
) -> dict[str, Any]:
    """Apply inclusion/exclusion flags to a record.

    With any inclusion flag only the included fields (plus id) are kept;
    otherwise the excluded fields are dropped. ``id`` is kept unless
    explicitly excluded.
    """
    if not projection:
        return record

    inclusive = any(v == 1 for k, v in projection.items() if k != "id")
    if inclusive:
        keep_id = projection.get("id", 1) == 1
        return {
            k: v
            for k, v in record.items()
            if projection.get(k) == 1 or (k == "id" and keep_id)
        }

    return {k: v for k, v in record.items() if projection.get(k, 1) != 0}
