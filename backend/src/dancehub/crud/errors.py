"""Error taxonomy for CRUD operations.

Every error carries the HTTP status it maps to, so the HTTP layer can
translate any failure into the standard response envelope without
knowing which operation raised it.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationIssue:
    """A single field-level validation problem.

    Attributes:
        path: Dotted location of the offending field (e.g. "coordinates.lat")
        message: Human-readable message
    """

    path: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "message": self.message}


class CrudError(Exception):
    """Base exception for failures surfaced to the caller."""

    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class Unauthorized(CrudError):
    """No resolved identity where one is required."""

    status_code = 401
    default_message = "Unauthorized"


class Forbidden(CrudError):
    """Identity present but not allowed by role or ownership policy."""

    status_code = 403
    default_message = "Forbidden"


class NotFound(CrudError):
    """No record with the given identity."""

    status_code = 404
    default_message = "Document not found"


class Conflict(CrudError):
    """A domain rule was violated (e.g. duplicate email)."""

    status_code = 400
    default_message = "Conflict"


class DomainError(CrudError):
    """A before-hook rejected the request for a domain-specific reason."""

    status_code = 400


class Internal(CrudError):
    """Unexpected failure (store unavailable, bug)."""

    status_code = 500
    default_message = "Internal server error"


class ValidationError(CrudError):
    """Payload failed schema validation."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, issues: list[ValidationIssue], message: str | None = None):
        super().__init__(message)
        self.issues = list(issues)

    @property
    def details(self) -> list[dict[str, Any]]:
        return [issue.to_dict() for issue in self.issues]
