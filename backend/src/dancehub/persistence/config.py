"""Database configuration and document store factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dancehub.persistence.adapter import DocumentStore


@dataclass
class DatabaseConfig:
    """Database connection configuration.

    Supports sqlite:/// and postgresql:// URL schemes.
    """

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Create config from environment variables.

        Resolution order:
        1. DATABASE_URL env var (standard)
        2. DANCEHUB_DB_PATH env var (converted to sqlite:/// URL)
        3. Default: sqlite:///{base_path}/data/dancehub.db
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        db_path = os.environ.get("DANCEHUB_DB_PATH")
        if db_path:
            return cls(url=f"sqlite:///{db_path}")

        if base_path:
            return cls(url=f"sqlite:///{base_path / 'data' / 'dancehub.db'}")

        return cls(url="sqlite:///dancehub.db")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.url.startswith("postgresql")

    @property
    def sqlite_path(self) -> str:
        """Filesystem path of a sqlite:/// URL (":memory:" when empty)."""
        return self.url.replace("sqlite:///", "") or ":memory:"


def create_store(config: DatabaseConfig) -> DocumentStore:
    """Create a document store based on the database URL scheme.

    Args:
        config: Database configuration with URL.

    Returns:
        A DocumentStore instance (not yet connected).

    Raises:
        ValueError: For unsupported URL schemes.
    """
    if config.is_sqlite:
        from dancehub.persistence.sqlite import SQLiteDocumentStore

        db_path = config.sqlite_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return SQLiteDocumentStore(db_path)

    if config.is_postgresql:
        from dancehub.persistence.postgresql import PostgreSQLDocumentStore

        return PostgreSQLDocumentStore(config.url)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
