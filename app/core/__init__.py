"""
Core Application - Infrastructure & Base Classes

Generic base classes shared by the domain apps. Business logic does not
live here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - AppendOnlyMixin: Insert-only rows (ledger tables)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - PaymentRequiredError: Balance too low
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (invalid transitions, append-only rows)
    - ExternalServiceError: Third-party service failures

Views (import from core.views):
    - health_check: Database and cache status
    - api_exception_handler: DRF handler rendering BaseApplicationError

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.services import BaseService, ServiceResult
    from core.exceptions import NotFoundError

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "PaymentRequiredError",
    "NotFoundError",
    "ConflictError",
    "ExternalServiceError",
]
