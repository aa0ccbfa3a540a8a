"""
Tests for webhook event handlers.

Test Classes:
    TestDispatch: Registry lookup and unknown events
    TestPaymentIntentHandlers: Authorization, failure and cancellation
    TestChargeRefundedHandler: Gateway-initiated refunds
"""

from decimal import Decimal

import pytest

from payments.models import Balance, Payment
from payments.state_machines import PaymentStatus
from payments.tests.factories import BalanceFactory, PaymentFactory, WebhookEventFactory
from payments.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook, register_handler


def _event(event_type, obj):
    return WebhookEventFactory(
        event_type=event_type,
        payload={"id": "evt_1", "type": event_type, "data": {"object": obj}},
    )


def _intent(ref="pi_test", **extra):
    return {"id": ref, "object": "payment_intent", **extra}


@pytest.mark.django_db
class TestDispatch:
    def test_known_event_types_are_registered(self):
        assert {
            "payment_intent.succeeded",
            "payment_intent.payment_failed",
            "payment_intent.canceled",
            "charge.refunded",
        } <= set(WEBHOOK_HANDLERS)

    def test_unknown_event_is_acknowledged(self):
        event = _event("customer.created", {"id": "cus_1", "object": "customer"})

        result = dispatch_webhook(event)

        assert result.success is True
        assert result.data is None

    def test_register_handler(self):
        calls = []

        @register_handler("test.custom_event")
        def handle_custom(webhook_event):
            calls.append(webhook_event.gateway_event_id)
            return "handled"

        try:
            event = _event("test.custom_event", {"id": "x"})
            assert dispatch_webhook(event) == "handled"
            assert calls == [event.gateway_event_id]
        finally:
            WEBHOOK_HANDLERS.pop("test.custom_event")

    def test_missing_reference_fails(self):
        event = _event("payment_intent.succeeded", {"object": "payment_intent"})

        result = dispatch_webhook(event)

        assert result.success is False
        assert result.error_code == "MISSING_OBJECT_ID"


@pytest.mark.django_db
class TestPaymentIntentHandlers:
    def test_succeeded_authorizes_pending_payment(self):
        payment = PaymentFactory(external_ref="pi_test")

        result = dispatch_webhook(_event("payment_intent.succeeded", _intent()))

        assert result.success is True
        assert Payment.objects.get(id=payment.id).status == PaymentStatus.AUTHORIZED

    def test_succeeded_redelivery_is_noop(self):
        payment = PaymentFactory(external_ref="pi_test", status=PaymentStatus.CAPTURED)

        result = dispatch_webhook(_event("payment_intent.succeeded", _intent()))

        assert result.success is True
        assert Payment.objects.get(id=payment.id).status == PaymentStatus.CAPTURED

    def test_unknown_payment_is_acknowledged(self, db):
        result = dispatch_webhook(_event("payment_intent.succeeded", _intent("pi_unknown")))

        assert result.success is True
        assert result.data is None

    def test_failed_records_gateway_message(self):
        payment = PaymentFactory(external_ref="pi_test")
        obj = _intent(last_payment_error={"code": "card_declined", "message": "Card declined"})

        dispatch_webhook(_event("payment_intent.payment_failed", obj))

        payment = Payment.objects.get(id=payment.id)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Card declined"

    def test_failed_falls_back_to_error_code(self):
        payment = PaymentFactory(external_ref="pi_test")
        obj = _intent(last_payment_error={"code": "expired_card"})

        dispatch_webhook(_event("payment_intent.payment_failed", obj))

        assert Payment.objects.get(id=payment.id).failure_reason == "expired_card"

    def test_canceled(self):
        payment = PaymentFactory(external_ref="pi_test", status=PaymentStatus.AUTHORIZED)

        dispatch_webhook(_event("payment_intent.canceled", _intent()))

        payment = Payment.objects.get(id=payment.id)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "canceled"


@pytest.mark.django_db
class TestChargeRefundedHandler:
    def _charge(self, amount_refunded=None):
        obj = {"id": "ch_1", "object": "charge", "payment_intent": "pi_test"}
        if amount_refunded is not None:
            obj["amount_refunded"] = amount_refunded
        return _event("charge.refunded", obj)

    def test_partial_refund_in_minor_units(self):
        payment = PaymentFactory(external_ref="pi_test", status=PaymentStatus.CAPTURED)

        result = dispatch_webhook(self._charge(amount_refunded=12550))

        payment = Payment.objects.get(id=payment.id)
        assert result.success is True
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_amount == Decimal("125.50")

    def test_missing_amount_refunds_everything(self):
        payment = PaymentFactory(external_ref="pi_test", status=PaymentStatus.CAPTURED)

        dispatch_webhook(self._charge())

        assert Payment.objects.get(id=payment.id).refunded_amount == Decimal("500.00")

    def test_refund_after_release_debits_professional(self):
        payment = PaymentFactory(
            external_ref="pi_test",
            status=PaymentStatus.RELEASED,
            platform_fee=Decimal("75.00"),
            professional_amount=Decimal("425.00"),
        )
        professional_id = payment.booking.professional_id
        BalanceFactory(professional_id=professional_id, available=Decimal("1000.00"))

        dispatch_webhook(self._charge(amount_refunded=50000))

        assert Balance.objects.get(professional_id=professional_id).available == Decimal(
            "575.00"
        )

    def test_already_refunded_is_skipped(self):
        payment = PaymentFactory(
            external_ref="pi_test",
            status=PaymentStatus.REFUNDED,
            refunded_amount=Decimal("100.00"),
        )

        dispatch_webhook(self._charge(amount_refunded=50000))

        assert Payment.objects.get(id=payment.id).refunded_amount == Decimal("100.00")
