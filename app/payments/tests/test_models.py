"""
Tests for payment models.

Test Classes:
    TestPaymentTransitions: FSM transitions and guarded fields
    TestPaymentConstraints: Database constraints on Payment
    TestBalance: Balance arithmetic and non-negative constraint
    TestDocumentSequence: Sequential document numbering
    TestPayoutTransitions: Payout FSM
    TestWebhookEvent: Processing status helpers and payload accessors
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from bookings.tests.factories import BookingFactory, OrderFactory
from payments.models import Balance, DocumentSequence, Payment
from payments.models.billing import format_document_number
from payments.state_machines import (
    DocumentKind,
    PaymentStatus,
    PayoutStatus,
    WebhookEventStatus,
)
from payments.tests.factories import (
    BalanceFactory,
    PaymentFactory,
    PayoutFactory,
    WebhookEventFactory,
)


@pytest.mark.django_db
class TestPaymentTransitions:
    def test_happy_path_sets_timestamps(self):
        payment = PaymentFactory()

        payment.authorize()
        payment.capture()
        payment.release(Decimal("75.00"), Decimal("425.00"))
        payment.save()

        payment = Payment.objects.get(id=payment.id)
        assert payment.status == PaymentStatus.RELEASED
        assert payment.authorized_at is not None
        assert payment.captured_at is not None
        assert payment.released_at is not None
        assert payment.platform_fee == Decimal("75.00")
        assert payment.professional_amount == Decimal("425.00")

    def test_capture_allowed_directly_from_pending(self):
        payment = PaymentFactory()

        payment.capture()

        assert payment.status == PaymentStatus.CAPTURED

    def test_release_requires_captured(self):
        payment = PaymentFactory()

        with pytest.raises(TransitionNotAllowed):
            payment.release(Decimal("0"), Decimal("0"))

    def test_refund_accumulates_amount(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED)

        payment.refund(Decimal("100.00"), "customer_request")

        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_amount == Decimal("100.00")
        assert payment.refundable_amount == Decimal("400.00")
        assert payment.refund_reason == "customer_request"

    @pytest.mark.parametrize(
        "status", [PaymentStatus.REFUNDED, PaymentStatus.FAILED, PaymentStatus.PENDING]
    )
    def test_refund_not_allowed(self, status):
        payment = PaymentFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            payment.refund(Decimal("1.00"))

    def test_fail_not_allowed_after_capture(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED)

        with pytest.raises(TransitionNotAllowed):
            payment.fail("too late")

    def test_status_is_protected(self):
        payment = PaymentFactory()

        with pytest.raises(AttributeError):
            payment.status = PaymentStatus.RELEASED

    def test_version_increments_on_save(self):
        payment = PaymentFactory()
        assert payment.version == 1

        payment.capture()
        payment.save()

        assert payment.version == 2
        assert Payment.objects.get(id=payment.id).version == 2

    def test_customer_id_comes_from_source(self):
        order = OrderFactory()
        payment = PaymentFactory(booking=None, order=order)

        assert payment.source == order
        assert payment.customer_id == order.customer_id


@pytest.mark.django_db
class TestPaymentConstraints:
    def test_requires_exactly_one_source(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(booking=BookingFactory(), order=OrderFactory())

        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(booking=None, order=None)

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(amount=Decimal("0.00"))

    def test_one_active_payment_per_booking(self):
        booking = BookingFactory()
        PaymentFactory(booking=booking)

        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(booking=booking)

    def test_failed_payments_do_not_block_a_retry(self):
        booking = BookingFactory()
        PaymentFactory(booking=booking, status=PaymentStatus.FAILED)
        PaymentFactory(booking=booking, status=PaymentStatus.FAILED)

        retry = PaymentFactory(booking=booking)

        assert Payment.objects.filter(booking=booking).count() == 3
        assert retry.status == PaymentStatus.PENDING


@pytest.mark.django_db
class TestBalance:
    def test_lock_for_creates_zero_balance(self):
        balance = BalanceFactory.build()

        with transaction.atomic():
            locked = Balance.lock_for(balance.professional_id, "mxn")

        assert locked.available == Decimal("0.00")
        assert locked.pending == Decimal("0.00")
        assert Balance.objects.filter(professional_id=balance.professional_id).count() == 1

    def test_reserve_restore_settle(self):
        balance = BalanceFactory(available=Decimal("500.00"))

        balance.reserve(Decimal("200.00"))
        assert (balance.available, balance.pending) == (Decimal("300.00"), Decimal("200.00"))

        balance.restore(Decimal("50.00"))
        assert (balance.available, balance.pending) == (Decimal("350.00"), Decimal("150.00"))

        balance.settle(Decimal("150.00"))
        assert (balance.available, balance.pending) == (Decimal("350.00"), Decimal("0.00"))

    def test_available_cannot_go_negative(self):
        balance = BalanceFactory(available=Decimal("10.00"))
        balance.debit(Decimal("10.01"))

        with pytest.raises(IntegrityError), transaction.atomic():
            balance.save()


@pytest.mark.django_db
class TestDocumentSequence:
    def test_format(self):
        assert format_document_number("INV", 2026, 1) == "INV-2026-000001"
        assert format_document_number("REC", 2026, 123456) == "REC-2026-123456"

    def test_numbers_increase_per_kind_and_year(self):
        assert DocumentSequence.next_number(DocumentKind.INVOICE, 2026) == "INV-2026-000001"
        assert DocumentSequence.next_number(DocumentKind.INVOICE, 2026) == "INV-2026-000002"
        assert DocumentSequence.next_number(DocumentKind.RECEIPT, 2026) == "REC-2026-000001"
        assert DocumentSequence.next_number(DocumentKind.INVOICE, 2027) == "INV-2027-000001"

    def test_rolled_back_allocation_is_not_consumed(self):
        with pytest.raises(RuntimeError), transaction.atomic():
            DocumentSequence.allocate(DocumentKind.INVOICE, 2026)
            raise RuntimeError("document save failed")

        assert DocumentSequence.allocate(DocumentKind.INVOICE, 2026) == 1


@pytest.mark.django_db
class TestPayoutTransitions:
    def test_process_then_complete(self):
        payout = PayoutFactory()

        payout.process()
        payout.complete("tr_123")

        assert payout.status == PayoutStatus.COMPLETED
        assert payout.external_ref == "tr_123"
        assert payout.processed_at is not None
        assert payout.completed_at is not None

    def test_cancel_only_when_pending(self):
        payout = PayoutFactory()
        assert payout.can_cancel is True

        payout.process()

        assert payout.can_cancel is False
        with pytest.raises(TransitionNotAllowed):
            payout.cancel()

    def test_fail_records_reason(self):
        payout = PayoutFactory(status=PayoutStatus.PROCESSING)

        payout.fail("account closed")

        assert payout.status == PayoutStatus.FAILED
        assert payout.failure_reason == "account closed"


@pytest.mark.django_db
class TestWebhookEvent:
    def test_processing_lifecycle(self):
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 1

        event.mark_failed("boom")
        assert event.can_retry is True

        event.mark_processing()
        event.mark_processed()
        assert event.is_processed is True
        assert event.processed_at is not None
        assert event.error_message is None

    def test_can_retry_stops_after_max_attempts(self):
        event = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=5)

        assert event.can_retry is False

    def test_payment_intent_ref_from_intent_event(self):
        event = WebhookEventFactory()

        assert event.get_payment_intent_ref() == "pi_test"

    def test_payment_intent_ref_from_charge_event(self):
        event = WebhookEventFactory(
            event_type="charge.refunded",
            payload={
                "data": {
                    "object": {"id": "ch_1", "object": "charge", "payment_intent": "pi_9"}
                }
            },
        )

        assert event.get_payment_intent_ref() == "pi_9"

    def test_malformed_payload(self):
        event = WebhookEventFactory(payload={"data": "nope"})

        assert event.get_object() == {}
        assert event.get_payment_intent_ref() is None
