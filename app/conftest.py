"""
Pytest configuration for the app packages.

Tests are auto-marked by filename so suites can be selected with
``-m unit`` or ``-m integration``.
"""

import pytest


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_services.py, test_tasks.py, test_handlers.py, etc. → integration
    - test_models.py, test_calculators.py, test_locks.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_ingest.py",
        "test_payment_lifecycle.py",
        "test_escrow.py",
        "test_payouts.py",
        "test_billing.py",
        "test_payout_executor.py",
        "test_escrow_scheduler.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_calculators.py",
        "test_config.py",
        "test_locks.py",
        "test_stripe_adapter.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
