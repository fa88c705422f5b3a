"""
Application error hierarchy.

Services raise these; views translate them with core.views.error_response,
which answers ``exc.to_dict()`` with ``exc.http_status``.

    BaseApplicationError        400
    ├── ValidationError         400
    ├── NotFoundError           404
    ├── PermissionDeniedError   403
    ├── ConflictError           409
    ├── ExternalServiceError    502
    └── ConfigurationError      503

Usage:
    raise ValidationError(
        "Property value is required",
        error_code="PROPERTY_VALUE_UNKNOWN",
        details={"property_id": str(property_id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Error with a message, a stable error code and optional details.

    Subclasses set ``default_error_code`` and ``http_status``; callers
    override the code per failure (``ESCROW_EXISTS``, ``NOT_RECIPIENT``).
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Response body: ``{"error", "error_code"[, "details"]}``."""
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ValidationError(BaseApplicationError):
    """Input or business rule a serializer cannot express."""

    default_error_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    default_error_code = "NOT_FOUND"
    http_status = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Authenticated caller is not a party to the resource.

    Missing credentials stay with DRF and answer 401.
    """

    default_error_code = "FORBIDDEN"
    http_status = 403


class ConflictError(BaseApplicationError):
    """Duplicate record or a state that no longer allows the operation."""

    default_error_code = "CONFLICT"
    http_status = 409


class ExternalServiceError(BaseApplicationError):
    """A processor call failed. Clients only see the message and code."""

    default_error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class ConfigurationError(BaseApplicationError):
    """An optional integration has no credentials in this environment."""

    default_error_code = "NOT_CONFIGURED"
    http_status = 503
