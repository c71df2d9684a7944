"""Persistence layer - document store adapters and filters."""

from dancehub.persistence.adapter import DocumentStore, Filter, SortSpec
from dancehub.persistence.config import DatabaseConfig, create_store

__all__ = ["DocumentStore", "DatabaseConfig", "Filter", "SortSpec", "create_store"]
