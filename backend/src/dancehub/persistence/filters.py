"""Helpers for building and checking document filters.

Filters use the same shape as the query API: a condition
``{"field", "operator", "value"}`` or a group
``{"operator": "and" | "or", "conditions": [...]}``.
"""

import re
from typing import Any

from dancehub.persistence.adapter import Filter

OPERATORS = (
    "eq",
    "neq",
    "gt",
    "gte",
    "lt",
    "lte",
    "in",
    "notIn",
    "contains",
    "startsWith",
    "isNull",
    "isNotNull",
)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_FIELD_PATH = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


def condition(field: str, operator: str, value: Any = None) -> Filter:
    """Build a single filter condition."""
    return {"field": field, "operator": operator, "value": value}


def eq(field: str, value: Any) -> Filter:
    return condition(field, "eq", value)


def and_(*filters: Filter | None) -> Filter | None:
    """Combine filters with AND, dropping empty ones.

    Returns None when nothing is left, or the single filter unchanged.
    """
    parts = [f for f in filters if f]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return {"operator": "and", "conditions": parts}


def or_(*filters: Filter | None) -> Filter | None:
    """Combine filters with OR, dropping empty ones."""
    parts = [f for f in filters if f]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return {"operator": "or", "conditions": parts}


def is_group(filter: Filter) -> bool:
    return "conditions" in filter


def group_operator(filter: Filter) -> str:
    """Return the SQL keyword for a group's boolean operator."""
    op = str(filter.get("operator", "and")).lower()
    if op not in ("and", "or"):
        raise ValueError(f"Unsupported group operator '{op}'")
    return op.upper()


def check_collection_name(name: str) -> str:
    """Validate a collection name before it is used as a table name."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid collection name '{name}'")
    return name


def check_field_path(path: str) -> list[str]:
    """Validate a dotted field path and return its parts."""
    if not _FIELD_PATH.match(path):
        raise ValueError(f"Invalid field path '{path}'")
    return path.split(".")


def escape_like(value: Any) -> str:
    """Escape LIKE wildcards so ``value`` matches literally (escape char ``\\``)."""
    text = str(value)
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
