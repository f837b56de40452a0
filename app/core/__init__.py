"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the ledger and payments apps. Nothing in
here knows about invoices, subscribers or Paddle.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (duplicates, etc.)
    - ExternalServiceError: Third-party service failures

Helpers (import from core.helpers):
    - get_client_ip: Client IP extraction from request
    - mask_secrets: Replace secret values inside log text

Usage:
    from core.models import BaseModel
    from core.services import BaseService, ServiceResult
    from core.exceptions import ConflictError, NotFoundError
    from core.helpers import get_client_ip
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

# Helpers (no Django model dependencies)
from .helpers import get_client_ip, mask_secrets

# Note: BaseModel is NOT imported here because it depends on Django's app
# registry being ready. Import it directly: from core.models import BaseModel

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ExternalServiceError",
    # Helpers
    "get_client_ip",
    "mask_secrets",
]
