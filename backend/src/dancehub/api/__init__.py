"""HTTP API: application factory and settings."""

from dancehub.api.app import create_app
from dancehub.api.settings import Settings

__all__ = ["create_app", "Settings"]
