"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


@pytest.fixture(autouse=True)
def paddle_test_settings(settings):
    """Known Paddle credentials so tests never depend on the environment."""
    settings.PADDLE_API_KEY = "pdl_test_apikey_123"
    settings.PADDLE_CLIENT_TOKEN = "test_clienttoken"
    settings.PADDLE_WEBHOOK_SECRET = "pdl_ntfset_secret"
    settings.PADDLE_WEBHOOK_TOLERANCE_SECONDS = None
    settings.PADDLE_DISABLE_REQUEST_LOG = False
    settings.PADDLE_LOCK_ON_CHARGEBACK = False
    settings.PADDLE_LOCK_ON_CHARGEBACK_WARNING = False
    settings.PADDLE_UNLOCK_ON_CHARGEBACK_REVERSE = False
    settings.PADDLE_IMAGE_URL = ""
    settings.PADDLE_STATEMENT_DESCRIPTOR = ""
    settings.PADDLE_CHECKOUT_SUCCESS_URL = "https://example.com/thanks"
    return settings


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full webhook journeys)
    - test_views.py, test_services.py, test_handlers.py, etc. → integration
    - test_models.py, test_periods.py, test_signature.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_handlers.py",
        "test_resolver.py",
        "test_currency.py",
        "test_checkout.py",
        "test_audit.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_periods.py",
        "test_signature.py",
        "test_envelope.py",
        "test_builder.py",
        "test_paddle_adapter.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filepath = str(item.fspath)
        filename = filepath.split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
