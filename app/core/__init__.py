"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the marketplace and payments apps. Nothing
here knows about payments or escrow.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, AuthenticationError, PermissionDeniedError,
      NotFoundError, PreconditionError, ConflictError,
      ExternalServiceError, InternalError

Views (import from core.views):
    - health_check: Database and cache health endpoint
"""
