"""
Notification service layer.

Services:
    NotificationService: Records notifications for users

Design Principles:
    - Services are stateless (use class methods)
    - Any failure to record a notification surfaces as NotificationError
    - Duplicate idempotency keys return the existing notification

Usage:
    from notifications.services import NotificationService

    NotificationService.notify(
        user_id=booking.professional_id,
        event_kind=NotificationKind.PAYMENT_RECEIVED,
        payload={"amount": "850.00", "currency": "MXN"},
    )
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import DatabaseError, IntegrityError, transaction

from core.services import BaseService

from notifications.exceptions import NotificationError
from notifications.models import TITLE_TEMPLATES, Notification

if TYPE_CHECKING:
    from typing import Any


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        notify: Record a notification for a user
    """

    @classmethod
    def notify(
        cls,
        user_id: uuid.UUID | str,
        event_kind: str,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> Notification:
        """
        Record a notification for a user.

        Args:
            user_id: Recipient user ID
            event_kind: NotificationKind value
            payload: Template data and event context
            idempotency_key: Optional key to make retries safe

        Returns:
            The created (or previously created) Notification

        Raises:
            NotificationError: Unknown kind, missing template data, or a
                database failure while recording
        """
        payload = payload or {}

        template = TITLE_TEMPLATES.get(event_kind)
        if template is None:
            raise NotificationError(
                f"Unknown notification kind: {event_kind}",
                error_code="UNKNOWN_NOTIFICATION_KIND",
                details={"event_kind": event_kind},
            )

        try:
            title = template.format(**payload)
        except KeyError as e:
            raise NotificationError(
                f"Missing template value {e} for {event_kind}",
                error_code="NOTIFICATION_TEMPLATE_ERROR",
                details={"event_kind": event_kind},
            ) from e

        if idempotency_key:
            existing = Notification.objects.filter(
                idempotency_key=idempotency_key
            ).first()
            if existing:
                cls.get_logger().info(
                    "Duplicate notification prevented",
                    extra={"idempotency_key": idempotency_key},
                )
                return existing

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient_id=user_id,
                    kind=event_kind,
                    title=title,
                    data=payload,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race with another writer using the same key
            existing = Notification.objects.filter(
                idempotency_key=idempotency_key
            ).first()
            if existing is None:
                raise NotificationError(
                    "Could not record notification",
                    details={"event_kind": event_kind, "user_id": str(user_id)},
                )
            return existing
        except DatabaseError as e:
            raise NotificationError(
                f"Could not record notification: {e}",
                details={"event_kind": event_kind, "user_id": str(user_id)},
            ) from e

        cls.get_logger().info(
            "Notification recorded",
            extra={
                "notification_id": str(notification.id),
                "event_kind": event_kind,
                "user_id": str(user_id),
            },
        )
        return notification
