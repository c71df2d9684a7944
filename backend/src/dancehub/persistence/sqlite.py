"""SQLite document store.

Each collection is a table holding one JSON document per row:

    seq  INTEGER PRIMARY KEY AUTOINCREMENT   -- insertion order
    id   TEXT UNIQUE NOT NULL                -- store-assigned identity
    doc  TEXT NOT NULL                       -- JSON object (without id)

Filters and sorts are compiled to ``json_extract`` expressions. Updates
use ``json_set`` so a partial update is a single statement.
"""

import json
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any

from dancehub.persistence.adapter import Filter, SortSpec
from dancehub.persistence.filters import (
    check_collection_name,
    check_field_path,
    escape_like,
    group_operator,
    is_group,
)


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str, separators=(",", ":"))


def _json_path(field: str) -> str:
    parts = check_field_path(field)
    return "$" + "".join(f'."{p}"' for p in parts)


class SQLiteDocumentStore:
    """Document store backed by SQLite's JSON1 functions."""

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None
        self._collections: set[str] = set()
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
        self._collections.clear()

    def ensure_collection(self, collection: str) -> None:
        """Create the collection's table if it doesn't exist."""
        conn = self._require_conn()
        name = check_collection_name(collection)
        if name in self._collections:
            return
        with self._lock:
            conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{name}" ('
                "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
                "id TEXT UNIQUE NOT NULL, "
                "doc TEXT NOT NULL)"
            )
            conn.commit()
        self._collections.add(name)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Fetch a single document by id."""
        self.ensure_collection(collection)
        with self._lock:
            row = self._require_conn().execute(
                f'SELECT id, doc FROM "{collection}" WHERE id = ?', [str(id)]
            ).fetchone()
        return self._to_document(row) if row else None

    def find_one(self, collection: str, filter: Filter | None = None) -> dict[str, Any] | None:
        rows = self.find(collection, filter=filter, limit=1)
        return rows[0] if rows else None

    def find(
        self,
        collection: str,
        filter: Filter | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query documents with filtering, sorting, and pagination."""
        self.ensure_collection(collection)

        where_clause, values = self._where(filter)

        order_parts = []
        for field, direction in sort or []:
            keyword = "DESC" if direction < 0 else "ASC"
            order_parts.append(f"{self._field_expr(field, values)} {keyword}")
        order_parts.append("seq ASC")
        order_clause = f" ORDER BY {', '.join(order_parts)}"

        limit_clause = ""
        if limit is not None:
            limit_clause = f" LIMIT {int(limit)} OFFSET {int(offset)}"
        elif offset:
            limit_clause = f" LIMIT -1 OFFSET {int(offset)}"

        sql = f'SELECT id, doc FROM "{collection}"{where_clause}{order_clause}{limit_clause}'
        with self._lock:
            rows = self._require_conn().execute(sql, values).fetchall()
        return [self._to_document(row) for row in rows]

    def count(self, collection: str, filter: Filter | None = None) -> int:
        self.ensure_collection(collection)
        where_clause, values = self._where(filter)
        with self._lock:
            row = self._require_conn().execute(
                f'SELECT COUNT(*) FROM "{collection}"{where_clause}', values
            ).fetchone()
        return row[0] if row else 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_one(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document.

        Returns:
            The stored document including its assigned ``id``
        """
        self.ensure_collection(collection)
        body = dict(document)
        doc_id = str(body.pop("id", None) or uuid.uuid4().hex)

        conn = self._require_conn()
        with self._lock:
            conn.execute(
                f'INSERT INTO "{collection}" (id, doc) VALUES (?, ?)',
                [doc_id, _dumps(body)],
            )
            conn.commit()

        return {"id": doc_id, **json.loads(_dumps(body))}

    def update_one(self, collection: str, id: str, changes: dict[str, Any]) -> bool:
        """Set top-level fields on one document.

        Returns:
            True if a document with that id exists
        """
        self.ensure_collection(collection)
        return self._update(collection, " WHERE id = ?", [str(id)], changes) > 0

    def update_many(
        self, collection: str, filter: Filter | None, changes: dict[str, Any]
    ) -> int:
        """Set top-level fields on every document matching the filter."""
        self.ensure_collection(collection)
        where_clause, values = self._where(filter)
        return self._update(collection, where_clause, values, changes)

    def delete_one(self, collection: str, id: str) -> bool:
        """Delete a document."""
        self.ensure_collection(collection)
        conn = self._require_conn()
        with self._lock:
            cursor = conn.execute(f'DELETE FROM "{collection}" WHERE id = ?', [str(id)])
            conn.commit()
        return cursor.rowcount > 0

    def _update(
        self,
        collection: str,
        where_clause: str,
        where_values: list[Any],
        changes: dict[str, Any],
    ) -> int:
        changes = {k: v for k, v in changes.items() if k != "id"}
        conn = self._require_conn()

        if not changes:
            # Nothing to set; still report how many documents matched
            with self._lock:
                row = conn.execute(
                    f'SELECT COUNT(*) FROM "{collection}"{where_clause}', where_values
                ).fetchone()
            return row[0] if row else 0

        set_args: list[str] = []
        set_values: list[Any] = []
        for key, value in changes.items():
            set_args.append("?, json(?)")
            set_values.extend([_json_path(key), _dumps(value)])

        sql = (
            f'UPDATE "{collection}" SET doc = json_set(doc, {", ".join(set_args)})'
            f"{where_clause}"
        )
        with self._lock:
            cursor = conn.execute(sql, set_values + where_values)
            conn.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Filter compilation
    # ------------------------------------------------------------------

    def _where(self, filter: Filter | None) -> tuple[str, list[Any]]:
        if not filter:
            return "", []
        values: list[Any] = []
        sql = self._build_filter(filter, values)
        if not sql:
            return "", []
        return f" WHERE {sql}", values

    def _build_filter(self, filter: Filter, values: list[Any]) -> str:
        if is_group(filter):
            op = group_operator(filter)
            parts = [self._build_filter(c, values) for c in filter["conditions"]]
            parts = [p for p in parts if p]
            if not parts:
                return ""
            return "(" + f" {op} ".join(parts) + ")"
        return self._build_condition(filter, values)

    def _field_expr(self, field: str, values: list[Any]) -> str:
        if field == "id":
            return "id"
        values.append(_json_path(field))
        return "json_extract(doc, ?)"

    def _build_condition(self, cond: Filter, values: list[Any]) -> str:
        """Build SQL condition from filter condition."""
        field = cond["field"]
        op = cond["operator"]
        value = cond.get("value")

        expr = self._field_expr(field, values)

        if op == "eq":
            if value is None:
                return f"{expr} IS NULL"
            values.append(self._bind(value))
            return f"{expr} = ?"
        elif op == "neq":
            # Repeat the expression so a missing field counts as "not equal"
            second = self._field_expr(field, values)
            values.append(self._bind(value))
            return f"({expr} IS NULL OR {second} != ?)"
        elif op in ("gt", "gte", "lt", "lte"):
            symbol = {"gt": ">", "gte": ">=", "lt": "<", "lte": "<="}[op]
            values.append(self._bind(value))
            return f"{expr} {symbol} ?"
        elif op in ("in", "notIn"):
            items = list(value or [])
            if not items:
                return "0" if op == "in" else "1"
            values.extend(self._bind(v) for v in items)
            placeholders = ", ".join("?" for _ in items)
            keyword = "IN" if op == "in" else "NOT IN"
            return f"{expr} {keyword} ({placeholders})"
        elif op == "contains":
            values.append(f"%{escape_like(value)}%")
            return f"{expr} LIKE ? ESCAPE '\\'"
        elif op == "startsWith":
            values.append(f"{escape_like(value)}%")
            return f"{expr} LIKE ? ESCAPE '\\'"
        elif op == "isNull":
            return f"{expr} IS NULL"
        elif op == "isNotNull":
            return f"{expr} IS NOT NULL"

        raise ValueError(f"Unsupported filter operator '{op}'")

    @staticmethod
    def _bind(value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return _dumps(value)
        return value

    @staticmethod
    def _to_document(row: sqlite3.Row) -> dict[str, Any]:
        return {"id": row["id"], **json.loads(row["doc"])}

    def _require_conn(self) -> sqlite3.Connection:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn
