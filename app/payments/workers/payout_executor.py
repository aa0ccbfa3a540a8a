"""
Payout executor worker.

execute_payout is queued by PayoutService.request_payout when the request
commits. It runs the transfer under a per-payout distributed lock so two
workers never call the gateway for the same payout concurrently. Transient
gateway errors leave the payout in PROCESSING and are retried by Celery
with backoff; the idempotency key makes the retried transfer safe.

Usage:
    from payments.workers import execute_payout

    execute_payout.delay(str(payout_id))
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.exceptions import (
    LockAcquisitionError,
    PaymentNotFoundError,
    StripeAPIUnavailableError,
    StripeRateLimitError,
    StripeTimeoutError,
)
from payments.locks import DistributedLock

logger = logging.getLogger(__name__)


MAX_RETRY_ATTEMPTS = 5

# Lock TTL for the transfer call (seconds)
EXECUTION_LOCK_TTL = 120


@shared_task(
    bind=True,
    autoretry_for=(StripeRateLimitError, StripeAPIUnavailableError, StripeTimeoutError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_RETRY_ATTEMPTS},
    acks_late=True,
)
def execute_payout(self, payout_id: str) -> dict:
    """
    Execute a single payout.

    Returns:
        Dict with:
        - status: the payout status after execution, or "not_found" /
          "lock_failed"
        - payout_id: The payout ID processed
        - external_ref: Transfer reference if completed

    Raises:
        StripeRateLimitError, StripeAPIUnavailableError, StripeTimeoutError:
            Re-raised to trigger Celery retry
    """
    from payments.services import PayoutService

    logger.info(
        "Processing payout execution",
        extra={"payout_id": payout_id, "celery_retries": self.request.retries},
    )

    try:
        with DistributedLock(f"payout:execute:{payout_id}", ttl=EXECUTION_LOCK_TTL):
            payout = PayoutService().process_payout(payout_id)
    except PaymentNotFoundError:
        logger.warning("Payout not found", extra={"payout_id": payout_id})
        return {"status": "not_found", "payout_id": payout_id}
    except LockAcquisitionError as e:
        logger.warning(
            f"Could not acquire lock for payout execution: {e}",
            extra={"payout_id": payout_id},
        )
        return {"status": "lock_failed", "payout_id": payout_id}

    return {
        "status": payout.status,
        "payout_id": payout_id,
        "external_ref": payout.external_ref,
    }
