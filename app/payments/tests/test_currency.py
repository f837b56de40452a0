"""
Tests for Paddle amount conversion and the exchange-rate snapshot.
"""

from decimal import Decimal

import pytest

from ledger.tests.factories import (
    InvoiceFactory,
    InvoicePaymentFactory,
    RecurringInvoiceFactory,
)
from payments.currency import (
    convert_with_stored_rate,
    major_to_minor,
    minor_to_major,
    resolve_amount,
    stored_rate,
    to_transaction_currency,
)
from payments.models import PaddleInvoiceData
from payments.tests.factories import PaddleInvoiceDataFactory


class TestMinorUnits:
    @pytest.mark.parametrize(
        ("amount", "currency", "expected"),
        [
            ("920", "EUR", Decimal("9.20")),
            (1000, "USD", Decimal("10.00")),
            ("1500", "JPY", Decimal("1500")),
            ("5", "usd", Decimal("0.05")),
            ("0", "GBP", Decimal("0.00")),
        ],
    )
    def test_minor_to_major(self, amount, currency, expected):
        assert minor_to_major(amount, currency) == expected

    def test_minor_to_major_rejects_garbage(self):
        with pytest.raises(ValueError):
            minor_to_major("ten", "USD")

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    def test_minor_to_major_rejects_non_finite(self, amount):
        with pytest.raises(ValueError):
            minor_to_major(amount, "USD")

    @pytest.mark.parametrize(
        ("amount", "currency", "expected"),
        [
            (Decimal("9.20"), "EUR", 920),
            (Decimal("10.005"), "USD", 1001),
            ("1500", "JPY", 1500),
        ],
    )
    def test_major_to_minor(self, amount, currency, expected):
        assert major_to_minor(amount, currency) == expected


@pytest.mark.django_db
class TestResolveAmount:
    def test_invoice_currency_uses_ledger_default(self):
        invoice = InvoiceFactory()

        assert resolve_amount(invoice, Decimal("12.34"), "USD") is None
        assert stored_rate(invoice) is None

    def test_first_localized_payment_stores_rate(self):
        invoice = InvoiceFactory()

        amount = resolve_amount(invoice, Decimal("9.20"), "EUR")

        data = PaddleInvoiceData.objects.get(invoice=invoice)
        assert amount == Decimal("10.00")
        assert data.xrate == Decimal("0.92")
        assert data.xcurrency == "EUR"

    def test_stored_rate_is_never_recomputed(self):
        """Should convert later payments with the first rate even when the amount drifts."""
        invoice = RecurringInvoiceFactory()
        resolve_amount(invoice, Decimal("9.20"), "EUR")
        InvoicePaymentFactory(invoice=invoice)

        amount = resolve_amount(invoice, Decimal("9.66"), "EUR")

        assert stored_rate(invoice) == Decimal("0.92")
        assert amount == Decimal("10.50")

    def test_first_charge_after_trial_stores_no_rate(self):
        """Should record the raw amount when the first period was free."""
        invoice = RecurringInvoiceFactory(first_total=Decimal("0.00"), second_total=Decimal("10.00"))

        amount = resolve_amount(invoice, Decimal("9.20"), "EUR")

        assert amount == Decimal("9.20")
        assert stored_rate(invoice) is None

    def test_later_payments_use_recurring_total(self):
        invoice = RecurringInvoiceFactory(first_total=Decimal("10.00"), second_total=Decimal("20.00"))
        InvoicePaymentFactory(invoice=invoice)

        amount = resolve_amount(invoice, Decimal("18.40"), "EUR")

        assert stored_rate(invoice) == Decimal("0.92")
        assert amount == Decimal("20.00")

    def test_no_rate_without_reference_amount(self):
        """Should record the raw amount and store nothing when there is nothing to compare with."""
        invoice = InvoiceFactory(first_total=Decimal("0.00"))

        assert resolve_amount(invoice, Decimal("9.20"), "EUR") == Decimal("9.20")
        assert stored_rate(invoice) is None

    def test_zero_event_amount_stores_no_rate(self):
        invoice = InvoiceFactory()

        resolve_amount(invoice, Decimal("0.00"), "EUR")

        assert stored_rate(invoice) is None


@pytest.mark.django_db
class TestStoredRateConversion:
    def test_converts_with_stored_rate(self):
        data = PaddleInvoiceDataFactory(xrate=Decimal("0.92"), xcurrency="EUR")

        assert convert_with_stored_rate(data.invoice, Decimal("4.60"), "EUR") == Decimal("5.00")

    def test_without_rate_returns_amount(self):
        invoice = InvoiceFactory()

        assert convert_with_stored_rate(invoice, Decimal("4.60"), "EUR") == Decimal("4.60")

    def test_same_currency(self):
        data = PaddleInvoiceDataFactory(xrate=Decimal("0.92"), xcurrency="EUR")

        assert convert_with_stored_rate(data.invoice, Decimal("4.60"), "USD") == Decimal("4.60")

    def test_to_transaction_currency(self):
        """Should convert a refund amount back into the currency Paddle charged."""
        data = PaddleInvoiceDataFactory(xrate=Decimal("0.92"), xcurrency="EUR")

        assert to_transaction_currency(data.invoice, Decimal("5.00")) == (Decimal("4.60"), "EUR")

    def test_to_transaction_currency_without_rate(self):
        invoice = InvoiceFactory()

        assert to_transaction_currency(invoice, Decimal("5")) == (Decimal("5.00"), "USD")
