"""
Pytest fixtures for payment tests.

Services are built with an in-memory gateway and a recording notifier so
tests never reach Stripe, and with a fixed SettlementConfig so amounts do
not depend on settings.

Usage:
    def test_release(lifecycle, captured_payment):
        lifecycle.release(captured_payment.booking_id)
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from bookings.tests.factories import BookingFactory
from payments.adapters import AuthorizationResult
from payments.config import SettlementConfig
from payments.services import (
    BillingDocumentGenerator,
    EscrowService,
    PaymentLifecycleManager,
    PayoutService,
)
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory


class FakeGateway:
    """
    In-memory PaymentGateway.

    Records every call in ``calls`` as (method, args, kwargs). Set
    ``fail_with`` to an exception instance to make the next call raise it.
    """

    def __init__(self):
        self.calls = []
        self.fail_with = None
        self._counter = 0

    def _record(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error
        self._counter += 1
        return self._counter

    def calls_to(self, method):
        return [call for call in self.calls if call[0] == method]

    def authorize_and_hold(self, amount, currency, metadata, idempotency_key=None):
        n = self._record(
            "authorize_and_hold", amount, currency, metadata, idempotency_key=idempotency_key
        )
        return AuthorizationResult(external_ref=f"pi_fake_{n}", client_handle=f"pi_fake_{n}_secret")

    def capture(self, external_ref, idempotency_key=None):
        self._record("capture", external_ref, idempotency_key=idempotency_key)

    def refund(self, external_ref, amount=None, reason=None, idempotency_key=None):
        n = self._record(
            "refund", external_ref, amount=amount, reason=reason, idempotency_key=idempotency_key
        )
        return f"re_fake_{n}"

    def transfer(self, amount, currency, destination_account, metadata=None, idempotency_key=None):
        n = self._record(
            "transfer",
            amount,
            currency,
            destination_account,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        return f"tr_fake_{n}"

    def verify_webhook_signature(self, payload, signature):
        raise NotImplementedError


class RecordingNotifier:
    """NotificationSender that keeps (user_id, kind, payload, key) tuples."""

    def __init__(self):
        self.sent = []

    def notify(self, user_id, event_kind, payload=None, idempotency_key=None):
        self.sent.append((user_id, event_kind, payload, idempotency_key))

    def kinds(self):
        return [kind for _, kind, _, _ in self.sent]


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def config():
    return SettlementConfig(
        commission_rate=Decimal("0.15"),
        default_tax_rate=Decimal("0.16"),
        tax_rates={"MX": Decimal("0.16"), "US": Decimal("0.08")},
        hold_duration=timedelta(hours=24),
        default_currency="mxn",
        min_payout_amount=Decimal("100.00"),
        invoice_due_days=30,
    )


@pytest.fixture
def lifecycle(gateway, config, notifier):
    return PaymentLifecycleManager(gateway=gateway, config=config, notifier=notifier)


@pytest.fixture
def escrow(lifecycle):
    return EscrowService(lifecycle_manager=lifecycle)


@pytest.fixture
def payouts(gateway, config, notifier):
    return PayoutService(gateway=gateway, config=config, notifier=notifier)


@pytest.fixture
def billing(gateway, config, notifier):
    return BillingDocumentGenerator(gateway=gateway, config=config, notifier=notifier)


# =============================================================================
# Payment State Fixtures
# =============================================================================


@pytest.fixture
def completed_booking(db):
    return BookingFactory(completed=True)


@pytest.fixture
def captured_payment(db, completed_booking):
    """A 1000.00 MXN payment in escrow for a completed booking."""
    return PaymentFactory(
        booking=completed_booking,
        amount=Decimal("1000.00"),
        status=PaymentStatus.CAPTURED,
    )
