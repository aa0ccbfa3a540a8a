"""
Shared base for settlement services.

Holds the injected collaborators (gateway, configuration, notifier) and the
after-commit notification helper. Notifications are a side effect of money
moving: they are sent only once the financial transaction has committed,
and a failure to send is logged and never propagated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction

from core.services import BaseService
from notifications.exceptions import NotificationError
from notifications.services import NotificationService

from payments.adapters import StripeGatewayAdapter
from payments.config import SettlementConfig

if TYPE_CHECKING:
    from typing import Any

    from payments.adapters import NotificationSender, PaymentGateway


class SettlementService(BaseService):
    """
    Base class for services that move or account for money.

    Args:
        gateway: Payment processor (defaults to StripeGatewayAdapter)
        config: Settlement parameters (defaults to SettlementConfig.from_settings())
        notifier: Notification sender (defaults to NotificationService)
    """

    def __init__(
        self,
        gateway: PaymentGateway | None = None,
        config: SettlementConfig | None = None,
        notifier: NotificationSender | None = None,
    ) -> None:
        self.gateway = gateway if gateway is not None else StripeGatewayAdapter()
        self.config = config if config is not None else SettlementConfig.from_settings()
        self.notifier = notifier if notifier is not None else NotificationService

    def notify_after_commit(
        self,
        user_id: Any,
        event_kind: str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> None:
        """Queue a best-effort notification for when the transaction commits."""
        transaction.on_commit(
            lambda: self.send_notification(user_id, event_kind, payload, idempotency_key)
        )

    def send_notification(
        self,
        user_id: Any,
        event_kind: str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> bool:
        """
        Send a notification, logging instead of raising on failure.

        Returns:
            True if the notifier accepted the notification
        """
        log_context = {
            "user_id": str(user_id),
            "event_kind": event_kind,
            "idempotency_key": idempotency_key,
        }
        try:
            self.notifier.notify(
                user_id,
                event_kind,
                payload,
                idempotency_key=idempotency_key,
            )
        except NotificationError as e:
            self.get_logger().warning(
                "Notification failed",
                extra={**log_context, "error_code": e.error_code, "error": e.message},
            )
            return False
        except Exception:
            self.get_logger().exception(
                "Unexpected error sending notification",
                extra=log_context,
            )
            return False
        return True
