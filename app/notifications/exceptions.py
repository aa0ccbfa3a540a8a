"""Notification exceptions."""

from __future__ import annotations

from core.exceptions import ExternalServiceError


class NotificationError(ExternalServiceError):
    """
    Raised when a notification could not be recorded.

    Callers that notify as a side effect of a financial operation catch
    this and log it; it must never undo the operation that triggered it.
    """

    default_error_code: str = "NOTIFICATION_FAILED"
