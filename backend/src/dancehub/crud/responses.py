"""Response envelope shared by every API route.

Shape: ``{"success": bool, "data"?: ..., "error"?: str, "details"?: [...]}``
"""

from dataclasses import dataclass
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from dancehub.crud.errors import CrudError, ValidationError


@dataclass
class ApiResponse:
    """Envelope for a single API outcome."""

    success: bool
    status_code: int
    data: Any = None
    error: str | None = None
    details: list[dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}

        if self.data is not None:
            result["data"] = self.data

        if self.error is not None:
            result["error"] = self.error

        if self.details:
            result["details"] = self.details

        return result

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=jsonable_encoder(self.to_dict()),
        )


def success_response(data: Any, status_code: int = 200) -> ApiResponse:
    """Create a success envelope."""
    return ApiResponse(success=True, status_code=status_code, data=data)


def error_response(error: CrudError) -> ApiResponse:
    """Create a failure envelope from a taxonomy error."""
    details = error.details if isinstance(error, ValidationError) else None
    return ApiResponse(
        success=False,
        status_code=error.status_code,
        error=error.message,
        details=details,
    )
