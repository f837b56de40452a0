"""
Pytest fixtures for webhook tests.

Provides ledger invoices in the states notifications arrive for, and a
patched Paddle adapter so handlers never reach the network.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from ledger.models import InvoiceStatus
from ledger.tests.factories import (
    InvoiceFactory,
    InvoiceItemFactory,
    RecurringInvoiceFactory,
    SubscriberFactory,
)
from payments.adapters import PaddleAdapter
from payments.tests.factories import PaddleInvoiceDataFactory

# What GET /transactions/{id}?include=address,business,customer returns
BACKFILL_TRANSACTION = {
    "id": "txn_01",
    "customer": {"id": "ctm_01", "name": "Grace Brewster Hopper", "email": "grace@example.com"},
    "address": {"id": "add_01", "country_code": "US", "postal_code": "10001"},
    "business": {"id": "biz_01", "tax_identifier": "US123456789"},
}


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def subscriber(db):
    """Subscriber with nothing but an email on file."""
    return SubscriberFactory(name_f="", name_l="")


@pytest.fixture
def invoice(db, subscriber):
    """Pending one-time invoice for 10.00 USD."""
    invoice = InvoiceFactory(subscriber=subscriber)
    InvoiceItemFactory(invoice=invoice)
    return invoice


@pytest.fixture
def recurring_invoice(db, subscriber):
    """Pending monthly invoice expecting three payments."""
    invoice = RecurringInvoiceFactory(subscriber=subscriber)
    InvoiceItemFactory(invoice=invoice)
    return invoice


@pytest.fixture
def trial_invoice(db, subscriber):
    """Pending invoice with a free 7-day trial, then two monthly rebills."""
    invoice = RecurringInvoiceFactory(subscriber=subscriber, first_total=0, first_period="7d")
    InvoiceItemFactory(invoice=invoice)
    return invoice


@pytest.fixture
def active_subscription(db, subscriber):
    """Recurring invoice already linked to Paddle subscription sub_01."""
    invoice = RecurringInvoiceFactory(subscriber=subscriber, status=InvoiceStatus.RECURRING_ACTIVE)
    PaddleInvoiceDataFactory(invoice=invoice, subscription_id="sub_01")
    return invoice


# =============================================================================
# Paddle Adapter Fixtures
# =============================================================================


@pytest.fixture
def paddle():
    """
    Patch the Paddle calls handlers make.

    Returns a namespace with the mocks: get_transaction answers the
    subscriber backfill, cancel_subscription succeeds.
    """
    with patch.object(PaddleAdapter, "get_transaction", return_value=BACKFILL_TRANSACTION) as get_transaction, \
            patch.object(PaddleAdapter, "cancel_subscription", return_value={"status": "canceled"}) as cancel:
        yield SimpleNamespace(get_transaction=get_transaction, cancel_subscription=cancel)
