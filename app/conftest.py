"""
Pytest configuration shared by all apps.

Assigns unit / integration / e2e markers by test filename and provides
fixtures used across apps.
"""

import pytest
from django.core.cache import cache


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full checkout journeys)
    - test_views.py, test_payment_adapter.py, test_tasks.py, etc. → integration
    - test_snapshot.py, test_state_transitions.py, test_locks.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_payment_adapter.py",
        "test_tasks.py",
        "test_customers.py",
        "test_sinks.py",
        "test_models.py",
        "test_baskets.py",
    ]

    unit_patterns = [
        "test_snapshot.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_exceptions.py",
        "test_stripe_gateway.py",
        "test_payone_gateway.py",
        "test_serializers.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty cache."""
    cache.clear()
    yield
    cache.clear()
