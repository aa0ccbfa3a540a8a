"""
Payout model for withdrawals from a professional's balance.

A Payout is created when a professional requests a withdrawal. Its amount
is reserved on the Balance (available -> pending) at request time; the
gateway transfer to the professional's ConnectedAccount happens later in
the execute_payout worker.

Usage:
    from payments.models import Payout

    payout.process()  # pending -> processing
    payout.save()

    # After the gateway transfer succeeds
    payout.complete(external_ref="tr_123")  # processing -> completed
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin

from payments.state_machines import PayoutStatus


class Payout(UUIDPrimaryKeyMixin, VersionedModelMixin, BaseModel):
    """
    Money leaving the platform to a professional.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING -> PROCESSING -> FAILED
        PENDING -> CANCELLED

    Fields:
        professional_id: Who requested the payout
        amount: Payout amount
        currency: ISO 4217 currency code
        status: Current FSM state
        external_ref: Gateway Transfer ID (tr_xxx)
        failure_reason: Error details if the transfer failed
        *_at timestamps: Track state transition times
    """

    professional_id = models.UUIDField(
        db_index=True,
        help_text="Professional receiving the payout",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Payout amount",
    )

    currency = models.CharField(
        max_length=3,
        default="mxn",
        help_text="ISO 4217 currency code (lowercase)",
    )

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    external_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Gateway Transfer ID (tr_xxx)",
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    failure_reason = models.TextField(null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"
        indexes = [
            models.Index(fields=["professional_id", "created_at"], name="payout_professional_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payout({self.id}, {self.status}, {self.amount} {self.currency.upper()})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PROCESSING,
    )
    def process(self):
        """
        Begin processing the payout.

        Transition: PENDING -> PROCESSING

        Committed before the gateway transfer is attempted.
        """
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=PayoutStatus.PROCESSING,
        target=PayoutStatus.COMPLETED,
    )
    def complete(self, external_ref: str | None = None):
        """Transition: PROCESSING -> COMPLETED"""
        self.completed_at = timezone.now()
        if external_ref:
            self.external_ref = external_ref

    @transition(
        field=status,
        source=PayoutStatus.PROCESSING,
        target=PayoutStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payout as failed.

        Transition: PROCESSING -> FAILED

        Only permanent gateway errors end here; transient ones leave the
        payout in PROCESSING for the worker retry.
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.CANCELLED,
    )
    def cancel(self, reason: str | None = None):
        """Transition: PENDING -> CANCELLED"""
        self.cancelled_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @property
    def can_cancel(self) -> bool:
        return self.status == PayoutStatus.PENDING
