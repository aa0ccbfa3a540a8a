"""
Collaborator interfaces consumed by the payment services.

PaymentGateway is what the lifecycle manager and payout service need from a
payment processor; StripeGatewayAdapter is the production implementation and
tests pass an in-memory double. NotificationSender is satisfied by
notifications.services.NotificationService.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class AuthorizationResult:
    """
    Outcome of authorize_and_hold.

    Attributes:
        external_ref: Gateway PaymentIntent ID, stored on the Payment
        client_handle: Secret the client uses to confirm the charge; never
            persisted
    """

    external_ref: str
    client_handle: str | None = None


class PaymentGateway(Protocol):
    """
    Opaque payment processor capability.

    Every method either returns on confirmed success or raises a
    payments.exceptions.GatewayError.
    """

    def authorize_and_hold(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> AuthorizationResult: ...

    def capture(self, external_ref: str, idempotency_key: str | None = None) -> None: ...

    def refund(
        self,
        external_ref: str,
        amount: Decimal | None = None,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> str: ...

    def transfer(
        self,
        amount: Decimal,
        currency: str,
        destination_account: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> str: ...

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]: ...


class NotificationSender(Protocol):
    def notify(
        self,
        user_id: Any,
        event_kind: str,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> Any: ...
