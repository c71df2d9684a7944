"""PostgreSQL document store.

Uses psycopg v3 (psycopg[binary]>=3.1.0) for database access.
Mirrors SQLiteDocumentStore method-for-method with PostgreSQL-specific SQL:
  - %s placeholders instead of ?
  - JSONB ``doc`` column, fields read with ``#>`` / ``#>>`` path operators
  - ``doc || patch`` for top-level partial updates
  - dict_row cursor factory for dict-based row access

Collection names are validated identifiers and always double-quoted so
names such as ``user`` or ``order`` don't collide with reserved words.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from dancehub.persistence.adapter import Filter, SortSpec
from dancehub.persistence.filters import (
    check_collection_name,
    check_field_path,
    escape_like,
    group_operator,
    is_group,
)


def _table(collection: str) -> str:
    return f'"{check_collection_name(collection)}"'


class PostgreSQLDocumentStore:
    """PostgreSQL document store using psycopg v3."""

    def __init__(self, url: str):
        # psycopg.connect() wants a plain libpq DSN or postgres:// URL,
        # so strip the +psycopg driver suffix when present.
        self.url = url.replace("postgresql+psycopg://", "postgresql://")
        self.conn: Any = None
        self._collections: set[str] = set()

    def connect(self) -> None:
        """Establish database connection."""
        import psycopg
        from psycopg.rows import dict_row

        self.conn = psycopg.connect(self.url, row_factory=dict_row)
        self.conn.autocommit = False

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
        self._collections.clear()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self._require_conn().rollback()

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        """Commit on success; roll back on any error so the connection stays usable."""
        conn = self._require_conn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def ensure_collection(self, collection: str) -> None:
        """Create the collection's table if it doesn't exist."""
        self._require_conn()
        if collection in self._collections:
            return
        with self._transaction() as conn:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {_table(collection)} ("
                "seq BIGSERIAL PRIMARY KEY, "
                "id TEXT UNIQUE NOT NULL, "
                "doc JSONB NOT NULL)"
            )
        self._collections.add(collection)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Fetch a single document by id."""
        self.ensure_collection(collection)
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT id, doc FROM {_table(collection)} WHERE id = %s", [str(id)]
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
            order_parts.append(f"{self._json_expr(field, values)} {keyword}")
        order_parts.append("seq ASC")
        order_clause = f" ORDER BY {', '.join(order_parts)}"

        limit_clause = ""
        if limit is not None:
            limit_clause = f" LIMIT {int(limit)}"
        if offset:
            limit_clause += f" OFFSET {int(offset)}"

        sql = (
            f"SELECT id, doc FROM {_table(collection)}"
            f"{where_clause}{order_clause}{limit_clause}"
        )
        with self._transaction() as conn:
            rows = conn.execute(sql, values).fetchall()
        return [self._to_document(row) for row in rows]

    def count(self, collection: str, filter: Filter | None = None) -> int:
        self.ensure_collection(collection)
        where_clause, values = self._where(filter)
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS n FROM {_table(collection)}{where_clause}", values
            ).fetchone()
        return row["n"] if row else 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_one(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document and return it with its assigned id."""
        from psycopg.types.json import Jsonb

        self.ensure_collection(collection)
        body = json.loads(json.dumps(document, default=str))
        doc_id = str(body.pop("id", None) or uuid.uuid4().hex)

        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO {_table(collection)} (id, doc) VALUES (%s, %s)",
                [doc_id, Jsonb(body)],
            )
        return {"id": doc_id, **body}

    def update_one(self, collection: str, id: str, changes: dict[str, Any]) -> bool:
        """Set top-level fields on one document."""
        self.ensure_collection(collection)
        return self._update(collection, " WHERE id = %s", [str(id)], changes) > 0

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
        with self._transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {_table(collection)} WHERE id = %s", [str(id)])
        return cursor.rowcount > 0

    def _update(
        self,
        collection: str,
        where_clause: str,
        where_values: list[Any],
        changes: dict[str, Any],
    ) -> int:
        from psycopg.types.json import Jsonb

        patch = json.loads(
            json.dumps({k: v for k, v in changes.items() if k != "id"}, default=str)
        )
        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {_table(collection)} SET doc = doc || %s{where_clause}",
                [Jsonb(patch)] + where_values,
            )
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

    def _json_expr(self, field: str, values: list[Any]) -> str:
        """JSONB value of a field (typed comparison and ordering)."""
        if field == "id":
            return "to_jsonb(id)"
        values.append(check_field_path(field))
        return "(doc #> %s)"

    def _text_expr(self, field: str, values: list[Any]) -> str:
        """Text value of a field (pattern matching)."""
        if field == "id":
            return "id"
        values.append(check_field_path(field))
        return "(doc #>> %s)"

    def _build_condition(self, cond: Filter, values: list[Any]) -> str:
        """Build SQL condition from filter condition."""
        from psycopg.types.json import Jsonb

        field = cond["field"]
        op = cond["operator"]
        value = cond.get("value")

        if op == "eq":
            if value is None:
                return self._null_check(field, values)
            expr = self._json_expr(field, values)
            values.append(Jsonb(value))
            return f"{expr} = %s"
        elif op == "neq":
            expr = self._json_expr(field, values)
            values.append(Jsonb(value))
            return f"{expr} IS DISTINCT FROM %s"
        elif op in ("gt", "gte", "lt", "lte"):
            symbol = {"gt": ">", "gte": ">=", "lt": "<", "lte": "<="}[op]
            expr = self._json_expr(field, values)
            values.append(Jsonb(value))
            return f"{expr} {symbol} %s"
        elif op in ("in", "notIn"):
            items = list(value or [])
            if not items:
                return "FALSE" if op == "in" else "TRUE"
            expr = self._json_expr(field, values)
            values.append([Jsonb(v) for v in items])
            if op == "in":
                return f"{expr} = ANY(%s::jsonb[])"
            return f"({expr} = ANY(%s::jsonb[])) IS NOT TRUE"
        elif op == "contains":
            expr = self._text_expr(field, values)
            values.append(f"%{escape_like(value)}%")
            return f"{expr} ILIKE %s ESCAPE '\\'"
        elif op == "startsWith":
            expr = self._text_expr(field, values)
            values.append(f"{escape_like(value)}%")
            return f"{expr} LIKE %s ESCAPE '\\'"
        elif op == "isNull":
            return self._null_check(field, values)
        elif op == "isNotNull":
            return f"NOT {self._null_check(field, values)}"

        raise ValueError(f"Unsupported filter operator '{op}'")

    def _null_check(self, field: str, values: list[Any]) -> str:
        """Missing fields and JSON null both count as null."""
        expr = self._json_expr(field, values)
        return f"COALESCE({expr}, 'null'::jsonb) = 'null'::jsonb"

    @staticmethod
    def _to_document(row: dict[str, Any]) -> dict[str, Any]:
        doc = row["doc"]
        if isinstance(doc, str):
            doc = json.loads(doc)
        return {"id": row["id"], **doc}

    def _require_conn(self) -> Any:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn
