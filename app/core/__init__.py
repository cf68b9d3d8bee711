"""
Core Application - Infrastructure & Base Classes

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, NotFoundError, ConflictError, ExternalServiceError

Views (import from core.views):
    - health_check: Database liveness endpoint

Note:
    Models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from .services import ServiceResult

__all__ = [
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ExternalServiceError",
]
