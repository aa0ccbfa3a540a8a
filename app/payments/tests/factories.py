"""
Factory Boy factories for payment test data.

Usage:
    from payments.tests.factories import PaymentFactory, BalanceFactory

    # Create a captured payment for a new booking
    payment = PaymentFactory(status=PaymentStatus.CAPTURED)

    # Create a payment for an order instead
    payment = PaymentFactory(booking=None, order=OrderFactory())
"""

import uuid
from decimal import Decimal

import factory

from bookings.tests.factories import BookingFactory
from payments.models import (
    Balance,
    ConnectedAccount,
    Payment,
    Payout,
    WebhookEvent,
)
from payments.state_machines import PaymentStatus, PayoutStatus, WebhookEventStatus


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for Payment instances.

    Default creates a PENDING payment of 500.00 MXN for a new booking.
    ``status`` is a protected FSM field, so it can only be set at creation.
    """

    class Meta:
        model = Payment

    booking = factory.SubFactory(BookingFactory)
    order = None
    amount = Decimal("500.00")
    currency = "mxn"
    status = PaymentStatus.PENDING
    external_ref = factory.Sequence(lambda n: f"pi_test_{n:06d}")


class BalanceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Balance
        django_get_or_create = ("professional_id",)

    professional_id = factory.LazyFunction(uuid.uuid4)
    available = Decimal("0.00")
    pending = Decimal("0.00")
    currency = "mxn"


class ConnectedAccountFactory(factory.django.DjangoModelFactory):
    """Factory for a connected account that is ready for payouts."""

    class Meta:
        model = ConnectedAccount

    professional_id = factory.LazyFunction(uuid.uuid4)
    external_account_id = factory.Sequence(lambda n: f"acct_test_{n:06d}")
    payouts_enabled = True


class PayoutFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Payout

    professional_id = factory.LazyFunction(uuid.uuid4)
    amount = Decimal("200.00")
    currency = "mxn"
    status = PayoutStatus.PENDING


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """
    Factory for WebhookEvent instances.

    Default payload is a payment_intent.succeeded event for ``pi_test``.
    """

    class Meta:
        model = WebhookEvent

    gateway_event_id = factory.Sequence(lambda n: f"evt_test_{n:06d}")
    event_type = "payment_intent.succeeded"
    status = WebhookEventStatus.PENDING
    payload = factory.LazyAttribute(
        lambda o: {
            "id": o.gateway_event_id,
            "type": o.event_type,
            "data": {"object": {"id": "pi_test", "object": "payment_intent"}},
        }
    )
