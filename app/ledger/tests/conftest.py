"""
Pytest fixtures for ledger tests.
"""

import pytest

from ledger.tests.factories import (
    InvoiceFactory,
    RecurringInvoiceFactory,
    SubscriberFactory,
)


@pytest.fixture
def subscriber(db):
    """Create a subscriber with only a name on file."""
    return SubscriberFactory()


@pytest.fixture
def invoice(db, subscriber):
    """Create a pending one-time invoice for 10.00 USD."""
    return InvoiceFactory(subscriber=subscriber)


@pytest.fixture
def recurring_invoice(db, subscriber):
    """Create a pending monthly invoice expecting three payments."""
    return RecurringInvoiceFactory(subscriber=subscriber)


@pytest.fixture
def trial_invoice(db, subscriber):
    """Create a pending invoice with a free 7-day trial then two monthly rebills."""
    return RecurringInvoiceFactory(
        subscriber=subscriber,
        first_total=0,
        first_period="7d",
    )
