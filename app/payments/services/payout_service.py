"""
Payout service for withdrawals from professionals' balances.

Requesting a payout checks and reserves the amount on the Balance in one
locked transaction, so two concurrent requests can never withdraw more than
is available. Executing it follows a two-phase pattern:

1. Phase 1: Transition payout to PROCESSING, commit
2. Phase 2: Gateway transfer (outside any transaction)
3. Phase 3: COMPLETED and pending cleared, or FAILED and funds restored

A transient gateway error leaves the payout in PROCESSING and is re-raised
so the execute_payout task retries it with the same idempotency key.

Usage:
    from payments.services import PayoutService

    payout = PayoutService().request_payout(professional_id, Decimal("500.00"))
    # execute_payout is queued when the transaction commits
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import transaction

from notifications.models import NotificationKind

from payments.adapters import IdempotencyKeyGenerator
from payments.calculators import quantize, to_decimal
from payments.exceptions import (
    GatewayError,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import Balance, ConnectedAccount, Payout
from payments.services.base import SettlementService
from payments.state_machines import PayoutStatus

if TYPE_CHECKING:
    from collections.abc import Sequence


TERMINAL_PAYOUT_STATUSES = (
    PayoutStatus.COMPLETED,
    PayoutStatus.FAILED,
    PayoutStatus.CANCELLED,
)


class PayoutService(SettlementService):
    """
    Service for professional payouts.

    Methods:
        get_balance: Balance for a professional (zero if none yet)
        request_payout: Reserve funds and create a PENDING payout
        process_payout: Execute the gateway transfer for a payout
        cancel_payout: Cancel a PENDING payout and restore its funds
        get_payout_history: Most recent payouts for a professional
    """

    def get_balance(self, professional_id: uuid.UUID | str) -> Balance:
        balance, _ = Balance.objects.get_or_create(
            professional_id=professional_id,
            defaults={"currency": self.config.default_currency},
        )
        return balance

    def request_payout(
        self,
        professional_id: uuid.UUID | str,
        amount,
        currency: str | None = None,
    ) -> Payout:
        """
        Request a withdrawal of available funds.

        Raises:
            PaymentValidationError: Non-positive, below minimum, or wrong currency
            InsufficientBalanceError: Amount exceeds Balance.available; the
                balance is left untouched
        """
        amount = quantize(to_decimal(amount))
        if amount <= 0:
            raise PaymentValidationError(
                "Payout amount must be positive",
                error_code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )
        if amount < self.config.min_payout_amount:
            raise PaymentValidationError(
                f"Minimum payout is {self.config.min_payout_amount}",
                error_code="PAYOUT_BELOW_MINIMUM",
                details={
                    "amount": str(amount),
                    "minimum": str(self.config.min_payout_amount),
                },
            )

        with transaction.atomic():
            balance = Balance.lock_for(
                professional_id, (currency or self.config.default_currency).lower()
            )
            if currency and currency.lower() != balance.currency:
                raise PaymentValidationError(
                    f"Balance is held in {balance.currency.upper()}",
                    error_code="CURRENCY_MISMATCH",
                    details={"currency": currency, "balance_currency": balance.currency},
                )
            if amount > balance.available:
                raise InsufficientBalanceError(
                    "Insufficient available balance",
                    details={
                        "amount": str(amount),
                        "available": str(balance.available),
                    },
                )

            balance.reserve(amount)
            balance.save()

            payout = Payout.objects.create(
                professional_id=professional_id,
                amount=amount,
                currency=balance.currency,
            )

            transaction.on_commit(lambda: self._enqueue_execution(payout.id))

        self.get_logger().info(
            "Payout requested",
            extra={
                "payout_id": str(payout.id),
                "professional_id": str(professional_id),
                "amount": str(amount),
            },
        )
        return payout

    def process_payout(self, payout_id: uuid.UUID | str) -> Payout:
        """
        Execute the gateway transfer for a payout.

        Idempotent: terminal payouts are returned unchanged, and a payout
        left in PROCESSING by a transient error is resumed with the same
        idempotency key.

        Raises:
            PaymentNotFoundError: Unknown payout
            GatewayError: Only retryable ones; permanent errors fail the payout
        """
        logger = self.get_logger()

        # Phase 1: PENDING -> PROCESSING
        with transaction.atomic():
            payout = Payout.objects.select_for_update().filter(id=payout_id).first()
            if payout is None:
                raise PaymentNotFoundError(
                    f"Payout {payout_id} not found",
                    error_code="PAYOUT_NOT_FOUND",
                    details={"payout_id": str(payout_id)},
                )

            if payout.status in TERMINAL_PAYOUT_STATUSES:
                logger.info(
                    "Payout already finished, nothing to do",
                    extra={"payout_id": str(payout.id), "status": payout.status},
                )
                return payout

            if payout.status == PayoutStatus.PENDING:
                payout.process()
                payout.save()

        account = ConnectedAccount.objects.filter(
            professional_id=payout.professional_id
        ).first()
        if account is None or not account.is_ready_for_payouts:
            logger.error(
                "No payout account ready for professional",
                extra={
                    "payout_id": str(payout.id),
                    "professional_id": str(payout.professional_id),
                },
            )
            return self._fail_payout(payout.id, "No payout account ready for transfers")

        # Phase 2: gateway transfer, outside any transaction
        try:
            transfer_ref = self.gateway.transfer(
                payout.amount,
                payout.currency,
                account.external_account_id,
                metadata={
                    "payout_id": str(payout.id),
                    "professional_id": str(payout.professional_id),
                },
                idempotency_key=IdempotencyKeyGenerator.generate("transfer", payout.id),
            )
        except GatewayError as e:
            if e.is_retryable:
                logger.warning(
                    f"Transient gateway error, will retry: {type(e).__name__}",
                    extra={"payout_id": str(payout.id), "error": e.message},
                )
                raise
            logger.error(
                f"Gateway rejected payout: {type(e).__name__}",
                extra={"payout_id": str(payout.id), "error": e.message},
            )
            return self._fail_payout(payout.id, e.message)

        # Phase 3: PROCESSING -> COMPLETED
        with transaction.atomic():
            payout = Payout.objects.select_for_update().get(id=payout.id)
            if payout.status != PayoutStatus.PROCESSING:
                logger.warning(
                    "Payout changed state during transfer",
                    extra={"payout_id": str(payout.id), "status": payout.status},
                )
                return payout

            payout.complete(transfer_ref)
            payout.save()

            balance = Balance.lock_for(payout.professional_id, payout.currency)
            balance.settle(payout.amount)
            balance.save()

            self.notify_after_commit(
                payout.professional_id,
                NotificationKind.PAYOUT_COMPLETED,
                {
                    "amount": str(payout.amount),
                    "currency": payout.currency.upper(),
                    "payout_id": str(payout.id),
                },
                idempotency_key=f"payout_completed:{payout.id}",
            )

        logger.info(
            "Payout completed",
            extra={"payout_id": str(payout.id), "transfer_ref": transfer_ref},
        )
        return payout

    def cancel_payout(self, payout_id: uuid.UUID | str, reason: str | None = None) -> Payout:
        """
        Cancel a payout that has not started processing.

        Raises:
            PaymentNotFoundError: Unknown payout
            InvalidStateTransitionError: PAYOUT_NOT_CANCELLABLE
        """
        with transaction.atomic():
            payout = Payout.objects.select_for_update().filter(id=payout_id).first()
            if payout is None:
                raise PaymentNotFoundError(
                    f"Payout {payout_id} not found",
                    error_code="PAYOUT_NOT_FOUND",
                    details={"payout_id": str(payout_id)},
                )
            if not payout.can_cancel:
                raise InvalidStateTransitionError(
                    f"Cannot cancel payout in '{payout.status}' state",
                    error_code="PAYOUT_NOT_CANCELLABLE",
                    details={"payout_id": str(payout.id), "status": payout.status},
                )

            payout.cancel(reason)
            payout.save()

            balance = Balance.lock_for(payout.professional_id, payout.currency)
            balance.restore(payout.amount)
            balance.save()

        self.get_logger().info(
            "Payout cancelled",
            extra={"payout_id": str(payout.id), "amount": str(payout.amount)},
        )
        return payout

    def get_payout_history(
        self,
        professional_id: uuid.UUID | str,
        limit: int = 50,
    ) -> Sequence[Payout]:
        return list(
            Payout.objects.filter(professional_id=professional_id).order_by("-created_at")[
                :limit
            ]
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _fail_payout(self, payout_id, reason: str) -> Payout:
        """PROCESSING -> FAILED and return the reserved funds to available."""
        with transaction.atomic():
            payout = Payout.objects.select_for_update().get(id=payout_id)
            if payout.status != PayoutStatus.PROCESSING:
                return payout

            payout.fail(reason)
            payout.save()

            balance = Balance.lock_for(payout.professional_id, payout.currency)
            balance.restore(payout.amount)
            balance.save()

            self.notify_after_commit(
                payout.professional_id,
                NotificationKind.PAYOUT_FAILED,
                {
                    "amount": str(payout.amount),
                    "currency": payout.currency.upper(),
                    "payout_id": str(payout.id),
                    "reason": reason,
                },
                idempotency_key=f"payout_failed:{payout.id}",
            )

        self.get_logger().warning(
            "Payout failed",
            extra={"payout_id": str(payout.id), "reason": reason},
        )
        return payout

    @staticmethod
    def _enqueue_execution(payout_id: uuid.UUID) -> None:
        from payments.workers.payout_executor import execute_payout

        execute_payout.delay(str(payout_id))


__all__ = ["PayoutService", "TERMINAL_PAYOUT_STATUSES"]

