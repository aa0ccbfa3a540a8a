"""
Workers for async payment processing.

This module contains Celery tasks for background payment operations:
- EscrowScheduler: Periodic automatic release of elapsed escrow holds
- PayoutExecutor: Executes requested payouts to connected accounts

Usage:
    from payments.workers import execute_payout, run_escrow_sweep

    execute_payout.delay(str(payout_id))
    run_escrow_sweep.delay()
"""

from payments.workers.escrow_scheduler import run_escrow_sweep
from payments.workers.payout_executor import execute_payout

__all__ = [
    "execute_payout",
    "run_escrow_sweep",
]
