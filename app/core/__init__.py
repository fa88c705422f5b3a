"""
Core application: shared infrastructure for the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with created_at / updated_at
    - VersionedModel: BaseModel plus an optimistic-locking version counter

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Result wrapper for expected failures

Exceptions (import from core.exceptions):
    - BaseApplicationError and its HTTP-mapped subclasses

Views (import from core.views):
    - health_check: Liveness probe
    - error_response: Translate a BaseApplicationError into a DRF Response

Note:
    Models and mixins are not imported here because they need the app
    registry. Import them from their modules.
"""

from .services import BaseService, ServiceResult

from .exceptions import (
    BaseApplicationError,
    ConfigurationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "ExternalServiceError",
    "ConfigurationError",
]
