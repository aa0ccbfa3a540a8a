"""
Payment model for the escrow lifecycle.

A Payment is one charge attempt for exactly one billable source: a Booking
or an Order. Funds are authorized and held by the gateway, captured into
escrow, then released (split between platform and professional) or refunded.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.create(
        booking=booking,
        amount=Decimal("1000.00"),
        currency="mxn",
        external_ref="pi_123",
    )

    payment.capture()  # pending -> captured
    payment.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin

from payments.state_machines import InvoiceKind, PaymentStatus


class Payment(UUIDPrimaryKeyMixin, VersionedModelMixin, BaseModel):
    """
    A charge for one booking or one order.

    State Flow:
        PENDING -> AUTHORIZED -> CAPTURED -> RELEASED
        PENDING -> CAPTURED
        PENDING/AUTHORIZED -> FAILED
        CAPTURED/RELEASED -> REFUNDED

    Fields:
        booking / order: The billable source (exactly one is set)
        amount: Total charged, tax included when invoice_kind is WITH_INVOICE
        currency: ISO 4217 currency code (lowercase)
        status: Current FSM state
        external_ref: Gateway PaymentIntent ID
        invoice_kind: Whether the customer asked for an invoice or a receipt
        tax_amount: Tax added on top of the pre-tax amount at intent creation
        platform_fee / professional_amount: Commission split, set on release
        refunded_amount: Sum of refunds issued through the gateway
        *_at timestamps: When each transition happened
        metadata: Flexible JSON storage

    Note:
        ``status`` is protected; change it only through the transition
        methods. Reload instances with ``Payment.objects.get`` rather than
        ``refresh_from_db()``.
    """

    # ==========================================================================
    # Billable Source
    # ==========================================================================

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Booking this payment is for",
    )

    order = models.ForeignKey(
        "bookings.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Order this payment is for",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Total amount charged to the customer",
    )

    currency = models.CharField(
        max_length=3,
        default="mxn",
        help_text="ISO 4217 currency code (lowercase)",
    )

    tax_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Tax included in amount",
    )

    platform_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Platform commission, set on release",
    )

    professional_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount credited to the professional, set on release",
    )

    refunded_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Total refunded to the customer",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    invoice_kind = models.CharField(
        max_length=20,
        choices=InvoiceKind.choices,
        null=True,
        blank=True,
        help_text="Billing document requested by the customer",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    external_ref = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway PaymentIntent ID (pi_xxx)",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    authorized_at = models.DateTimeField(null=True, blank=True)
    captured_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    refund_reason = models.TextField(null=True, blank=True)

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason reported by the gateway when the payment failed",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata for extensibility",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(booking__isnull=False, order__isnull=True)
                    | Q(booking__isnull=True, order__isnull=False)
                ),
                name="payment_exactly_one_source",
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=Q(booking__isnull=False) & ~Q(status=PaymentStatus.FAILED),
                name="payment_unique_active_booking",
            ),
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(order__isnull=False) & ~Q(status=PaymentStatus.FAILED),
                name="payment_unique_active_order",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency.upper()})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def source(self):
        """The Booking or Order this payment is for."""
        return self.booking if self.booking_id else self.order

    @property
    def customer_id(self):
        return self.source.customer_id

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refunded_amount

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.AUTHORIZED,
    )
    def authorize(self):
        """Gateway reported the charge as authorized and held."""
        self.authorized_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.AUTHORIZED],
        target=PaymentStatus.CAPTURED,
    )
    def capture(self):
        """
        Funds captured into escrow.

        Transition: PENDING/AUTHORIZED -> CAPTURED
        """
        self.captured_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.CAPTURED,
        target=PaymentStatus.RELEASED,
    )
    def release(self, platform_fee: Decimal, professional_amount: Decimal):
        """
        Release escrowed funds.

        Transition: CAPTURED -> RELEASED

        Args:
            platform_fee: Commission kept by the platform
            professional_amount: Share credited to the professional
        """
        self.platform_fee = platform_fee
        self.professional_amount = professional_amount
        self.released_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.CAPTURED, PaymentStatus.RELEASED],
        target=PaymentStatus.REFUNDED,
    )
    def refund(self, amount: Decimal, reason: str | None = None):
        """
        Return funds to the customer.

        Transition: CAPTURED/RELEASED -> REFUNDED

        Partial refunds also land in REFUNDED; refunded_amount keeps the sum.
        """
        self.refunded_amount = self.refunded_amount + amount
        self.refunded_at = timezone.now()
        if reason:
            self.refund_reason = reason

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.AUTHORIZED],
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payment as failed.

        Transition: PENDING/AUTHORIZED -> FAILED
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason
