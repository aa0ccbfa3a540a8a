"""
Escrow scheduler worker for the periodic automatic release.

run_escrow_sweep is scheduled by celery-beat (see the payments data
migration) every ESCROW_SWEEP_INTERVAL_MINUTES. A non-blocking
distributed lock keeps overlapping runs from sweeping at the same time;
the losing run returns "skipped" instead of waiting.

Usage:
    from payments.workers import run_escrow_sweep

    run_escrow_sweep.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock

logger = logging.getLogger(__name__)


SWEEP_LOCK_KEY = "escrow:sweep"

# Longer than any realistic sweep; expires on its own if the worker dies
SWEEP_LOCK_TTL = 600


@shared_task(bind=True)
def run_escrow_sweep(self) -> dict:
    """
    Release every booking whose escrow hold has elapsed.

    Returns:
        Dict with "status" ("ok" or "skipped") and, when it ran, the
        sweep report counts
    """
    from payments.services import EscrowService

    try:
        with DistributedLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, blocking=False):
            report = EscrowService().run_escrow_sweep()
    except LockAcquisitionError:
        logger.info("Escrow sweep already running elsewhere, skipping")
        return {"status": "skipped"}

    return {"status": "ok", **report.to_dict()}
