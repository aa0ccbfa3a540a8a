"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (wrong state, concurrent modifications)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")

    raise NotFoundError(
        f"Booking {booking_id} not found",
        error_code="BOOKING_NOT_FOUND",
        details={"booking_id": str(booking_id)},
    )

    # Convert to dict for an API layer
    try:
        ...
    except BaseApplicationError as e:
        payload = e.to_dict()

Note:
    These exceptions are for domain/business logic errors. Transport layers
    map them to their own status codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

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
        """
        Convert exception to dictionary.

        Returns:
            Dict with error, error_code, and (when present) details keys

        Example:
            {
                "error": "Payment not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"payment_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Raised before any state is mutated; nothing is persisted.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        booking = Booking.objects.filter(id=booking_id).first()
        if not booking:
            raise NotFoundError(
                f"Booking {booking_id} not found",
                error_code="BOOKING_NOT_FOUND",
                details={"booking_id": str(booking_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Invalid state transitions
    - Concurrent modification conflicts
    - Duplicate entries
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Example:
        try:
            stripe.PaymentIntent.create(...)
        except stripe.APIError as e:
            raise ExternalServiceError(
                "Payment service unavailable",
                error_code="STRIPE_ERROR",
                details={"service": "stripe", "original_error": str(e)},
            )
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
