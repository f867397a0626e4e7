"""
Shared error handling for resource services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ServiceException(Exception):
    """Base exception for resource services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(ServiceException):
    """Input failed the declared field constraints."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)

    @property
    def fields(self):
        """Names of the offending fields."""
        return [error["field"] for error in self.details.get("errors", [])]

    @classmethod
    def from_pydantic(cls, exc, message: str = "Parameters validation error"):
        """Build from a pydantic ValidationError, keeping one entry per offending field."""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(part) for part in error["loc"]) or "__root__",
                "type": error["type"],
                "message": error["msg"],
            })
        return cls(message, {"errors": errors})


class NotFoundError(ServiceException):
    """Target record does not exist."""

    status_code = 404

    def __init__(self, resource: str, entity_id: Any, details: Optional[Dict[str, Any]] = None):
        details = {"resource": resource, "id": str(entity_id), **(details or {})}
        super().__init__("NOT_FOUND", f"{resource} entity not found: {entity_id}", details)


class AdapterConnectionError(ServiceException):
    """Storage backend unreachable."""

    status_code = 503

    def __init__(self, backend: str, message: str = "Storage backend unreachable", details: Optional[Dict[str, Any]] = None):
        super().__init__("ADAPTER_CONNECTION_ERROR", f"{backend}: {message}", details)


class ServiceError(ServiceException):
    """Service-related errors."""

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)
