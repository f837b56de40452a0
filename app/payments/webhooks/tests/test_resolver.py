"""
Tests for InvoiceResolver.
"""

import pytest

from ledger.tests.factories import AccessPeriodFactory, InvoiceFactory, InvoicePaymentFactory
from payments.tests.factories import PaddleInvoiceDataFactory
from payments.webhooks.resolver import InvoiceResolver, ResolutionStrategy


@pytest.mark.django_db
class TestInvoiceResolver:
    def test_custom_data_wins(self):
        """Should prefer the public id in custom data over every other strategy."""
        named = InvoiceFactory()
        PaddleInvoiceDataFactory(subscription_id="sub_01")
        InvoicePaymentFactory(receipt_id="txn_01")

        resolution = InvoiceResolver.resolve(
            custom_data={"invoice_public_id": named.public_id},
            subscription_id="sub_01",
            receipt_id="txn_01",
        )

        assert resolution.invoice == named
        assert resolution.strategy == ResolutionStrategy.CUSTOM_DATA

    def test_subscription_before_receipt(self):
        """Should use the subscription when custom data is absent."""
        by_subscription = PaddleInvoiceDataFactory(subscription_id="sub_01").invoice
        InvoicePaymentFactory(receipt_id="txn_01")

        resolution = InvoiceResolver.resolve(custom_data=None, subscription_id="sub_01", receipt_id="txn_01")

        assert resolution.invoice == by_subscription
        assert resolution.strategy == ResolutionStrategy.SUBSCRIPTION_ID

    def test_unknown_subscription_falls_through_to_receipt(self):
        payment = InvoicePaymentFactory(receipt_id="txn_01")

        resolution = InvoiceResolver.resolve(custom_data={}, subscription_id="sub_unknown", receipt_id="txn_01")

        assert resolution.invoice == payment.invoice
        assert resolution.strategy == ResolutionStrategy.RECEIPT_ID

    def test_receipt_via_access_period(self):
        """Should find free-trial invoices through the access period they created."""
        access = AccessPeriodFactory(transaction_id="txn_trial")

        resolution = InvoiceResolver.resolve(custom_data={}, subscription_id=None, receipt_id="txn_trial")

        assert resolution.invoice == access.invoice

    def test_missing_named_invoice_is_poison(self):
        """Should not fall back when custom data names an invoice that does not exist."""
        InvoicePaymentFactory(receipt_id="txn_01")

        resolution = InvoiceResolver.resolve(
            custom_data={"invoice_public_id": "NOPE"},
            subscription_id=None,
            receipt_id="txn_01",
        )

        assert not resolution.found
        assert resolution.explicit_id_missing

    def test_not_found(self):
        resolution = InvoiceResolver.resolve(custom_data={}, subscription_id="sub_x", receipt_id="txn_x")

        assert not resolution.found
        assert not resolution.explicit_id_missing
        assert resolution.strategy is None
