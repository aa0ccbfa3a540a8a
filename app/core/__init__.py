"""
Core Application - Infrastructure & Base Classes

Shared building blocks used by the domain apps (bookings, notifications,
payments). Nothing in here knows about money or bookings.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedModelMixin: Optimistic version counter bumped on every save

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (wrong state, concurrent modification)
    - ExternalServiceError: Third-party service failures
"""
