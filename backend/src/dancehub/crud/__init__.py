"""Configuration-driven CRUD: schemas, policy hooks, operations and routes."""

from dancehub.crud.errors import (
    Conflict,
    CrudError,
    DomainError,
    Forbidden,
    Internal,
    NotFound,
    Unauthorized,
    ValidationError,
    ValidationIssue,
)
from dancehub.crud.schema import Document, EntitySchema
from dancehub.crud.config import EntityConfig, apply_projection
from dancehub.crud.responses import ApiResponse, error_response, success_response
from dancehub.crud.generator import CrudRouteGenerator, CrudService

__all__ = [
    "Conflict",
    "CrudError",
    "DomainError",
    "Forbidden",
    "Internal",
    "NotFound",
    "Unauthorized",
    "ValidationError",
    "ValidationIssue",
    "Document",
    "EntitySchema",
    "EntityConfig",
    "apply_projection",
    "ApiResponse",
    "error_response",
    "success_response",
    "CrudRouteGenerator",
    "CrudService",
]
