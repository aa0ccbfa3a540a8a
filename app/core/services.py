"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: Use for expected failures the caller branches on
      (webhook handlers, background task outcomes)
    - Exceptions: Use for failures the caller must not ignore
      (validation, not found, wrong state, gateway errors)

Usage:
    from core.services import BaseService, ServiceResult

    class PayoutService(BaseService):
        def cancel_payout(self, payout_id):
            with transaction.atomic():
                ...
            self.get_logger().info("Payout cancelled", extra={...})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code
        errors: Field-level errors for validation failures

    Usage:
        result = dispatch_webhook(event)
        if result.success:
            event.mark_processed()
        else:
            event.mark_failed(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T | None = None) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Design Notes:
        - Collaborators (gateway adapter, configuration, notifier) are
          passed to __init__ so tests can swap them
        - Raise exceptions for failures the caller must handle
        - Use ServiceResult for outcomes the caller merely reports
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
