"""
Payment lifecycle manager: the escrow state machine.

Owns every Payment transition and the balance credit that happens on
release. Gateway calls are made before the local state advances, so a
gateway failure never leaves a payment in a state the gateway did not
confirm.

Flow:
    create_intent -> PENDING (gateway holds the customer's funds)
    on_gateway_succeeded -> AUTHORIZED
    capture -> CAPTURED (funds in escrow)
    release -> RELEASED (fee split, professional balance credited)
    refund -> REFUNDED (before or, with a clawback, after release)

Usage:
    from payments.services import PaymentLifecycleManager

    manager = PaymentLifecycleManager()
    intent = manager.create_intent(
        booking_id=booking.id,
        amount=Decimal("500.00"),
        currency="mxn",
        invoice_kind=InvoiceKind.WITH_INVOICE,
        invoice_data={"customer_name": "Ana", "customer_tax_id": "XAXX010101000", "country": "MX"},
    )
    manager.capture(payment.external_ref)
    manager.release(booking.id)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django_fsm import can_proceed

from bookings.models import Booking, BookingStatus, Order
from notifications.models import NotificationKind

from payments.adapters import IdempotencyKeyGenerator
from payments.calculators import calculate_tax, quantize, split_commission, to_decimal
from payments.exceptions import (
    BookingNotFoundError,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    PreconditionError,
)
from payments.models import Balance, Payment
from payments.services.base import SettlementService
from payments.state_machines import InvoiceKind, PaymentStatus

if TYPE_CHECKING:
    from typing import Any


CAPTURABLE_STATUSES = (PaymentStatus.PENDING, PaymentStatus.AUTHORIZED)
REFUNDABLE_STATUSES = (PaymentStatus.CAPTURED, PaymentStatus.RELEASED)


@dataclass(frozen=True)
class IntentResult:
    """
    Returned by create_intent.

    client_handle goes to the client to confirm the charge; it is not stored.
    """

    payment_id: uuid.UUID
    client_handle: str | None
    amount: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class ReleaseResult:
    payment_id: uuid.UUID
    platform_fee: Decimal
    professional_amount: Decimal


class PaymentLifecycleManager(SettlementService):
    """
    Service for payment state transitions.

    Methods:
        create_intent: Validate, compute tax, hold funds, persist PENDING
        capture: Capture held funds into escrow
        release: Split escrowed funds and credit the professional
        refund: Return funds to the customer
        on_gateway_*: Apply gateway-reported events idempotently
        get_payment / get_payment_for_booking: Reads
    """

    # =========================================================================
    # Intent
    # =========================================================================

    def create_intent(
        self,
        *,
        amount,
        booking_id: uuid.UUID | str | None = None,
        order_id: uuid.UUID | str | None = None,
        currency: str | None = None,
        invoice_kind: str | None = None,
        invoice_data: dict[str, Any] | None = None,
    ) -> IntentResult:
        """
        Create a payment intent for a booking or an order.

        With WITH_INVOICE, ``amount`` is pre-tax: tax for the customer's
        country is added and the Payment stores the tax-inclusive total.

        Raises:
            PaymentValidationError: Bad amount, source or invoice data
            BookingNotFoundError: Booking or order does not exist
            PreconditionError: The source already has an active payment
            GatewayError: The gateway could not hold the funds
        """
        if (booking_id is None) == (order_id is None):
            raise PaymentValidationError(
                "Exactly one of booking_id or order_id is required",
                error_code="INVALID_PAYMENT_SOURCE",
            )

        amount = to_decimal(amount)
        if amount <= 0:
            raise PaymentValidationError(
                "Amount must be positive",
                error_code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )

        if invoice_kind is not None and invoice_kind not in InvoiceKind.values:
            raise PaymentValidationError(
                f"Unknown invoice kind: {invoice_kind}",
                error_code="INVALID_INVOICE_KIND",
            )

        if invoice_kind == InvoiceKind.WITH_INVOICE:
            tax_id = str((invoice_data or {}).get("customer_tax_id") or "").strip()
            if not tax_id:
                raise PaymentValidationError(
                    "Invoice data with a tax identifier is required",
                    error_code="MISSING_INVOICE_DATA",
                )

        source_field, source = self._load_source(booking_id, order_id)

        if Payment.objects.filter(**{source_field: source}).exclude(
            status=PaymentStatus.FAILED
        ).exists():
            raise PreconditionError(
                f"{source_field.capitalize()} {source.id} already has an active payment",
                error_code="PAYMENT_ALREADY_EXISTS",
                details={f"{source_field}_id": str(source.id)},
            )

        if invoice_kind == InvoiceKind.WITH_INVOICE:
            breakdown = calculate_tax(amount, invoice_data.get("country"), self.config)
            total, tax_amount = breakdown.total, breakdown.tax_amount
        else:
            total, tax_amount = quantize(amount), Decimal("0.00")

        currency = (currency or self.config.default_currency).lower()
        attempt = (
            Payment.objects.filter(**{source_field: source}, status=PaymentStatus.FAILED).count()
            + 1
        )
        authorization = self.gateway.authorize_and_hold(
            total,
            currency,
            {f"{source_field}_id": str(source.id), "invoice_kind": invoice_kind or ""},
            idempotency_key=IdempotencyKeyGenerator.generate(
                "authorize", f"{source_field}:{source.id}", attempt
            ),
        )

        metadata: dict[str, Any] = {}
        if invoice_data:
            metadata["invoice_data"] = dict(invoice_data)

        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    **{source_field: source},
                    amount=total,
                    tax_amount=tax_amount,
                    currency=currency,
                    invoice_kind=invoice_kind,
                    external_ref=authorization.external_ref,
                    metadata=metadata,
                )
        except IntegrityError as e:
            # Lost a race with a concurrent intent for the same source. The
            # hold just placed has no Payment row and must be voided by hand.
            self.get_logger().error(
                "Orphaned gateway hold after concurrent payment intent",
                extra={
                    f"{source_field}_id": str(source.id),
                    "external_ref": authorization.external_ref,
                    "amount": str(total),
                    "currency": currency,
                },
            )
            raise PreconditionError(
                f"{source_field.capitalize()} {source.id} already has an active payment",
                error_code="PAYMENT_ALREADY_EXISTS",
                details={f"{source_field}_id": str(source.id)},
            ) from e

        self.get_logger().info(
            "Payment intent created",
            extra={
                "payment_id": str(payment.id),
                f"{source_field}_id": str(source.id),
                "amount": str(total),
                "tax_amount": str(tax_amount),
                "currency": currency,
            },
        )

        return IntentResult(
            payment_id=payment.id,
            client_handle=authorization.client_handle,
            amount=total,
            tax_amount=tax_amount,
        )

    # =========================================================================
    # Capture
    # =========================================================================

    def capture(self, external_ref: str) -> Payment:
        """
        Capture held funds into escrow.

        Raises:
            PaymentNotFoundError: No payment with this external reference
            InvalidStateTransitionError: Payment is not PENDING or AUTHORIZED
            GatewayError: Capture not confirmed; the payment is unchanged
        """
        with transaction.atomic():
            payment = (
                Payment.objects.select_for_update()
                .filter(external_ref=external_ref)
                .first()
            )
            if payment is None:
                raise PaymentNotFoundError(
                    f"No payment for reference {external_ref}",
                    details={"external_ref": external_ref},
                )

            if payment.status not in CAPTURABLE_STATUSES:
                raise InvalidStateTransitionError(
                    f"Cannot capture payment in '{payment.status}' state",
                    error_code="PAYMENT_NOT_CAPTURABLE",
                    details={"payment_id": str(payment.id), "status": payment.status},
                )

            self.gateway.capture(
                external_ref,
                idempotency_key=IdempotencyKeyGenerator.generate("capture", payment.id),
            )

            payment.capture()
            payment.save()

        self.get_logger().info(
            "Payment captured into escrow",
            extra={"payment_id": str(payment.id), "amount": str(payment.amount)},
        )
        return payment

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, booking_id: uuid.UUID | str) -> ReleaseResult:
        """
        Release a completed booking's escrowed funds.

        Checks, in order: booking exists, booking is COMPLETED, payment
        exists, payment is CAPTURED, the professional's balance is held in
        the payment's currency. A second call for the same booking fails
        the CAPTURED check and leaves the balance alone.

        Raises:
            BookingNotFoundError: BOOKING_NOT_FOUND
            PreconditionError: BOOKING_NOT_COMPLETED or CURRENCY_MISMATCH
            InvalidStateTransitionError: PAYMENT_NOT_CAPTURED
            PaymentNotFoundError: PAYMENT_NOT_FOUND
        """
        booking = Booking.objects.filter(id=booking_id).first()
        if booking is None:
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            )

        if booking.status != BookingStatus.COMPLETED:
            raise PreconditionError(
                f"Booking {booking_id} is not completed",
                error_code="BOOKING_NOT_COMPLETED",
                details={"booking_id": str(booking_id), "status": booking.status},
            )

        payment = self._current_payment(booking)
        if payment is None:
            raise PaymentNotFoundError(
                f"No payment for booking {booking_id}",
                details={"booking_id": str(booking_id)},
            )

        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)
            if payment.status != PaymentStatus.CAPTURED:
                raise InvalidStateTransitionError(
                    f"Payment {payment.id} is not captured",
                    error_code="PAYMENT_NOT_CAPTURED",
                    details={"payment_id": str(payment.id), "status": payment.status},
                )

            balance = self._lock_balance(booking.professional_id, payment)

            split = split_commission(payment.amount, self.config.commission_rate)
            payment.release(split.platform_fee, split.professional_amount)
            payment.save()

            balance.credit(split.professional_amount)
            balance.save()

            self.notify_after_commit(
                booking.professional_id,
                NotificationKind.PAYMENT_RECEIVED,
                {
                    "amount": str(split.professional_amount),
                    "currency": payment.currency.upper(),
                    "payment_id": str(payment.id),
                    "booking_id": str(booking.id),
                },
                idempotency_key=f"payment_received:{payment.id}",
            )

        self.get_logger().info(
            "Escrow released",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "platform_fee": str(split.platform_fee),
                "professional_amount": str(split.professional_amount),
            },
        )

        return ReleaseResult(
            payment_id=payment.id,
            platform_fee=split.platform_fee,
            professional_amount=split.professional_amount,
        )

    # =========================================================================
    # Refund
    # =========================================================================

    def refund(
        self,
        payment_id: uuid.UUID | str,
        amount=None,
        reason: str | None = None,
    ) -> Payment:
        """
        Refund a captured or released payment, fully or partially.

        After release, the professional's share of the refund is clawed back
        from their available balance in the same transaction; if the balance
        cannot cover it the refund is rejected before the gateway is called.

        Raises:
            PaymentNotFoundError: Unknown payment
            PaymentValidationError: Non-positive amount or more than refundable
            InvalidStateTransitionError: PAYMENT_NOT_REFUNDABLE
            PreconditionError: INSUFFICIENT_BALANCE_FOR_CLAWBACK or
                CURRENCY_MISMATCH
            GatewayError: Refund not confirmed; nothing changes
        """
        with transaction.atomic():
            payment = (
                Payment.objects.select_for_update()
                .select_related("booking")
                .filter(id=payment_id)
                .first()
            )
            if payment is None:
                raise PaymentNotFoundError(
                    f"Payment {payment_id} not found",
                    details={"payment_id": str(payment_id)},
                )

            if payment.status not in REFUNDABLE_STATUSES:
                raise InvalidStateTransitionError(
                    f"Cannot refund payment in '{payment.status}' state",
                    error_code="PAYMENT_NOT_REFUNDABLE",
                    details={"payment_id": str(payment.id), "status": payment.status},
                )

            refund_amount = (
                payment.refundable_amount if amount is None else quantize(to_decimal(amount))
            )
            if refund_amount <= 0 or refund_amount > payment.refundable_amount:
                raise PaymentValidationError(
                    "Refund amount must be positive and at most the refundable amount",
                    error_code="INVALID_REFUND_AMOUNT",
                    details={
                        "amount": str(refund_amount),
                        "refundable": str(payment.refundable_amount),
                    },
                )

            balance = None
            clawback = Decimal("0.00")
            if payment.status == PaymentStatus.RELEASED:
                clawback = self._clawback_for(payment, refund_amount)
                balance = self._lock_balance(payment.booking.professional_id, payment)
                if balance.available < clawback:
                    raise InsufficientBalanceError(
                        "Professional balance cannot cover the refund clawback",
                        error_code="INSUFFICIENT_BALANCE_FOR_CLAWBACK",
                        details={
                            "payment_id": str(payment.id),
                            "clawback": str(clawback),
                            "available": str(balance.available),
                        },
                    )

            refund_ref = self.gateway.refund(
                payment.external_ref,
                amount=refund_amount,
                reason=reason,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "refund", f"{payment.id}:{payment.refunded_amount}:{refund_amount}"
                ),
            )

            payment.refund(refund_amount, reason)
            payment.metadata = {
                **payment.metadata,
                "refunds": [*payment.metadata.get("refunds", []), refund_ref],
            }
            payment.save()

            if balance is not None:
                balance.debit(clawback)
                balance.save()

            self.notify_after_commit(
                payment.customer_id,
                NotificationKind.PAYMENT_REFUNDED,
                {
                    "amount": str(refund_amount),
                    "currency": payment.currency.upper(),
                    "payment_id": str(payment.id),
                },
                idempotency_key=f"payment_refunded:{refund_ref}",
            )

        self.get_logger().info(
            "Payment refunded",
            extra={
                "payment_id": str(payment.id),
                "amount": str(refund_amount),
                "clawback": str(clawback),
                "refund_ref": refund_ref,
            },
        )
        return payment

    # =========================================================================
    # Gateway Reconcilers
    # =========================================================================

    def on_gateway_succeeded(self, external_ref: str) -> Payment | None:
        """Gateway authorized the charge: PENDING -> AUTHORIZED."""
        return self._reconcile(external_ref, "authorize", PaymentStatus.AUTHORIZED)

    def on_gateway_failed(self, external_ref: str, reason: str | None = None) -> Payment | None:
        """Gateway reported a failed charge: PENDING/AUTHORIZED -> FAILED."""
        return self._reconcile(
            external_ref, "fail", PaymentStatus.FAILED, reason=reason or "payment_failed"
        )

    def on_gateway_canceled(self, external_ref: str) -> Payment | None:
        """Gateway canceled the intent: PENDING/AUTHORIZED -> FAILED."""
        return self._reconcile(external_ref, "fail", PaymentStatus.FAILED, reason="canceled")

    def on_gateway_refunded(self, external_ref: str, amount=None) -> Payment | None:
        """
        Gateway reported a refund: CAPTURED/RELEASED -> REFUNDED.

        Refunds issued through refund() are already REFUNDED and are skipped.
        A refund made directly at the gateway after release debits the
        professional's share from their balance as far as it goes and
        records any shortfall in the payment metadata.
        """
        with transaction.atomic():
            payment = (
                Payment.objects.select_for_update()
                .select_related("booking")
                .filter(external_ref=external_ref)
                .first()
            )
            if payment is None or payment.status == PaymentStatus.REFUNDED:
                self._log_reconcile_skip(external_ref, payment, "refund")
                return payment
            if not can_proceed(payment.refund):
                self._log_reconcile_skip(external_ref, payment, "refund")
                return payment

            refund_amount = payment.refundable_amount
            if amount is not None:
                refund_amount = min(quantize(to_decimal(amount)), refund_amount)

            if payment.status == PaymentStatus.RELEASED:
                clawback = self._clawback_for(payment, refund_amount)
                balance = Balance.lock_for(payment.booking.professional_id, payment.currency)
                # A balance in another currency cannot absorb the clawback
                debited = Decimal("0.00")
                if balance.currency == payment.currency:
                    debited = min(clawback, balance.available)
                    balance.debit(debited)
                    balance.save()
                if debited < clawback:
                    payment.metadata = {
                        **payment.metadata,
                        "clawback_shortfall": str(clawback - debited),
                    }
                    self.get_logger().error(
                        "Gateway refund after release exceeds professional balance",
                        extra={
                            "payment_id": str(payment.id),
                            "clawback": str(clawback),
                            "debited": str(debited),
                            "currency": payment.currency,
                            "balance_currency": balance.currency,
                        },
                    )

            payment.refund(refund_amount, "gateway_refund")
            payment.save()

        self.get_logger().info(
            "Payment reconciled to refunded",
            extra={"payment_id": str(payment.id), "amount": str(refund_amount)},
        )
        return payment

    # =========================================================================
    # Reads
    # =========================================================================

    def get_payment(self, payment_id: uuid.UUID | str) -> Payment:
        payment = Payment.objects.filter(id=payment_id).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        return payment

    def get_payment_for_booking(self, booking_id: uuid.UUID | str) -> Payment:
        """Return the booking's active payment, or its latest failed attempt."""
        payment = self._current_payment(booking_id) or (
            Payment.objects.filter(booking_id=booking_id).order_by("-created_at").first()
        )
        if payment is None:
            raise PaymentNotFoundError(
                f"No payment for booking {booking_id}",
                details={"booking_id": str(booking_id)},
            )
        return payment

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _current_payment(booking) -> Payment | None:
        return (
            Payment.objects.filter(booking=booking)
            .exclude(status=PaymentStatus.FAILED)
            .order_by("-created_at")
            .first()
        )

    @staticmethod
    def _load_source(booking_id, order_id):
        if booking_id is not None:
            booking = Booking.objects.filter(id=booking_id).first()
            if booking is None:
                raise BookingNotFoundError(
                    f"Booking {booking_id} not found",
                    details={"booking_id": str(booking_id)},
                )
            return "booking", booking

        order = Order.objects.filter(id=order_id).first()
        if order is None:
            raise BookingNotFoundError(
                f"Order {order_id} not found",
                error_code="ORDER_NOT_FOUND",
                details={"order_id": str(order_id)},
            )
        return "order", order

    @staticmethod
    def _lock_balance(professional_id, payment: Payment) -> Balance:
        """Lock the professional's balance, which must be in the payment's currency."""
        balance = Balance.lock_for(professional_id, payment.currency)
        if balance.currency != payment.currency:
            raise PreconditionError(
                f"Balance is held in {balance.currency.upper()}, "
                f"payment is in {payment.currency.upper()}",
                error_code="CURRENCY_MISMATCH",
                details={
                    "payment_id": str(payment.id),
                    "currency": payment.currency,
                    "balance_currency": balance.currency,
                },
            )
        return balance

    @staticmethod
    def _clawback_for(payment: Payment, refund_amount: Decimal) -> Decimal:
        """Professional's proportional share of a refund on a released payment."""
        return quantize(payment.professional_amount * refund_amount / payment.amount)

    def _reconcile(
        self,
        external_ref: str,
        transition_name: str,
        target: str,
        **transition_kwargs,
    ) -> Payment | None:
        with transaction.atomic():
            payment = (
                Payment.objects.select_for_update().filter(external_ref=external_ref).first()
            )
            if payment is None or payment.status == target:
                self._log_reconcile_skip(external_ref, payment, transition_name)
                return payment

            transition_method = getattr(payment, transition_name)
            if not can_proceed(transition_method):
                self._log_reconcile_skip(external_ref, payment, transition_name)
                return payment

            transition_method(**transition_kwargs)
            payment.save()

        self.get_logger().info(
            "Payment reconciled from gateway event",
            extra={
                "payment_id": str(payment.id),
                "transition": transition_name,
                "status": payment.status,
            },
        )
        return payment

    def _log_reconcile_skip(self, external_ref: str, payment: Payment | None, transition_name: str) -> None:
        self.get_logger().info(
            "Gateway event needs no change",
            extra={
                "external_ref": external_ref,
                "transition": transition_name,
                "status": payment.status if payment else None,
            },
        )
