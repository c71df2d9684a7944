"""DocumentStore Protocol: the shared interface for all document store adapters."""

from typing import Any, Protocol, runtime_checkable


# A filter is either a single condition:
#     {"field": "status", "operator": "eq", "value": "active"}
# or a group of conditions (groups nest):
#     {"operator": "and", "conditions": [...]}
Filter = dict[str, Any]

# Sort order as (field, direction) pairs, direction 1 = ascending, -1 = descending.
SortSpec = list[tuple[str, int]]


@runtime_checkable
class DocumentStore(Protocol):
    """Interface all document store adapters must implement.

    Documents are JSON objects grouped into named collections. Every
    document carries an ``id`` assigned by the store on insert. Writes
    are atomic per document only; there are no multi-document
    transactions.
    """

    # Raw connection handle. Type varies by adapter (sqlite3.Connection,
    # psycopg.Connection).
    conn: Any

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def ensure_collection(self, collection: str) -> None: ...

    def insert_one(self, collection: str, document: dict[str, Any]) -> dict[str, Any]: ...

    def get(self, collection: str, id: str) -> dict[str, Any] | None: ...

    def find_one(
        self, collection: str, filter: Filter | None = None
    ) -> dict[str, Any] | None: ...

    def find(
        self,
        collection: str,
        filter: Filter | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]: ...

    def count(self, collection: str, filter: Filter | None = None) -> int: ...

    def update_one(self, collection: str, id: str, changes: dict[str, Any]) -> bool: ...

    def update_many(
        self, collection: str, filter: Filter | None, changes: dict[str, Any]
    ) -> int: ...

    def delete_one(self, collection: str, id: str) -> bool: ...
