"""
Tests for transaction.completed reconciliation.

Handlers are driven through dispatch_webhook() exactly as the webhook view
drives them; Paddle calls are patched by the ``paddle`` fixture.
"""

from decimal import Decimal
from unittest.mock import ANY

import pytest

from ledger.models import InvoiceStatus
from payments.exceptions import MalformedEventError, PaddleAPIError
from payments.models import PaddleCustomerData, PaddleInvoiceData
from payments.webhooks.classifier import classify, dispatch_webhook
from payments.webhooks.handlers import TransactionHandler
from payments.webhooks.handlers.transaction import subscriber_fields_from_transaction
from payments.webhooks.protocols import OutcomeStatus
from payments.webhooks.tests.events import envelope, transaction_data


def completed(**kwargs):
    txn_id = kwargs.pop("txn_id", "txn_01")
    return envelope("transaction.completed", transaction_data(txn_id, **kwargs))


def handle(env):
    return dispatch_webhook(TransactionHandler(env))


# =============================================================================
# One-time Payments
# =============================================================================


class TestOneTimePayment:
    def test_records_payment_and_access(self, invoice, paddle):
        """Should mark the invoice paid with one payment and one access period."""
        outcome = handle(completed(public_id=invoice.public_id))

        invoice.refresh_from_db()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert outcome.invoice == invoice
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.payments.get().amount == Decimal("10.00")
        assert invoice.access_periods.count() == 1

    def test_redelivery_is_duplicate(self, invoice, paddle):
        """Should record nothing new when the same transaction arrives again."""
        handle(completed(public_id=invoice.public_id))

        outcome = handle(completed(public_id=invoice.public_id))

        assert outcome.status == OutcomeStatus.DUPLICATE
        assert outcome.http_status == 200
        assert invoice.payments.count() == 1
        assert invoice.access_periods.count() == 1

    def test_stores_billed_items_and_customer_ids(self, invoice, paddle):
        line_items = [
            {"id": "txnitm_paid", "totals": {"total": "1000"}},
            {"id": "txnitm_free", "totals": {"total": "0"}},
        ]

        handle(completed(public_id=invoice.public_id, business_id="biz_01", line_items=line_items))

        assert PaddleInvoiceData.objects.get(invoice=invoice).billed_line_items == ["txnitm_paid"]
        customer = PaddleCustomerData.objects.get(subscriber=invoice.subscriber)
        assert (customer.customer_id, customer.address_id, customer.business_id) == ("ctm_01", "add_01", "biz_01")


class TestSubscriberBackfill:
    def test_fills_empty_profile(self, invoice, paddle):
        """Should copy name, country, zip and tax id from the fetched transaction."""
        handle(completed(public_id=invoice.public_id))

        subscriber = invoice.subscriber
        subscriber.refresh_from_db()
        assert subscriber.name_f == "Grace"
        assert subscriber.name_l == "Brewster Hopper"
        assert subscriber.country == "US"
        assert subscriber.zip == "10001"
        assert subscriber.tax_id == "US123456789"
        paddle.get_transaction.assert_called_once_with(
            "txn_01",
            include=("address", "business", "customer"),
            invoice=ANY,
        )

    def test_paddle_failure_does_not_block_payment(self, invoice, paddle):
        """Should still record the payment when the backfill call fails."""
        paddle.get_transaction.side_effect = PaddleAPIError("Service unavailable", status_code=503)

        outcome = handle(completed(public_id=invoice.public_id))

        invoice.subscriber.refresh_from_db()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert invoice.payments.count() == 1
        assert invoice.subscriber.name_f == ""

    def test_name_without_space(self):
        fields = subscriber_fields_from_transaction({"customer": {"name": "Cher"}})

        assert fields["name_f"] == "Cher"
        assert fields["name_l"] == ""


# =============================================================================
# Recurring Payments
# =============================================================================


class TestRecurringPayments:
    def test_final_payment_cancels_subscription_once(self, recurring_invoice, paddle):
        """Should cancel the Paddle subscription after the last expected payment, exactly once."""
        handle(completed(txn_id="txn_01", public_id=recurring_invoice.public_id, subscription_id="sub_01"))
        handle(completed(txn_id="txn_02", origin="subscription_recurring", subscription_id="sub_01"))
        paddle.cancel_subscription.assert_not_called()

        handle(completed(txn_id="txn_03", origin="subscription_recurring", subscription_id="sub_01"))
        outcome = handle(completed(txn_id="txn_03", origin="subscription_recurring", subscription_id="sub_01"))

        recurring_invoice.refresh_from_db()
        assert outcome.status == OutcomeStatus.DUPLICATE
        assert recurring_invoice.payments.count() == 3
        assert recurring_invoice.status == InvoiceStatus.RECURRING_FINISHED
        assert recurring_invoice.rebill_date is None
        paddle.cancel_subscription.assert_called_once_with("sub_01", effective_from="immediately", invoice=ANY)

    def test_first_payment_activates(self, recurring_invoice, paddle):
        handle(completed(public_id=recurring_invoice.public_id, subscription_id="sub_01"))

        recurring_invoice.refresh_from_db()
        assert recurring_invoice.status == InvoiceStatus.RECURRING_ACTIVE
        assert recurring_invoice.rebill_date is not None
        assert PaddleInvoiceData.objects.get(invoice=recurring_invoice).subscription_id == "sub_01"

    def test_free_trial_grants_access_only(self, trial_invoice, paddle):
        """Should start the trial with an access period and no payment."""
        outcome = handle(completed(public_id=trial_invoice.public_id, subscription_id="sub_01", total="0"))
        redelivery = handle(completed(public_id=trial_invoice.public_id, subscription_id="sub_01", total="0"))

        trial_invoice.refresh_from_db()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert redelivery.status == OutcomeStatus.DUPLICATE
        assert trial_invoice.status == InvoiceStatus.RECURRING_ACTIVE
        assert trial_invoice.payments.count() == 0
        assert trial_invoice.access_periods.count() == 1

    def test_first_charge_after_trial_uses_recurring_total(self, trial_invoice, paddle):
        handle(completed(txn_id="txn_01", public_id=trial_invoice.public_id, subscription_id="sub_01", total="0"))

        handle(completed(txn_id="txn_02", origin="subscription_recurring", subscription_id="sub_01"))

        assert trial_invoice.payments.get().amount == trial_invoice.second_total

    def test_subscription_update_is_only_noted(self, active_subscription, paddle):
        """Should add a subscriber note and record no payment for plan changes."""
        outcome = handle(completed(origin="subscription_update", subscription_id="sub_01", total="550"))

        assert outcome.status == OutcomeStatus.PROCESSED
        assert active_subscription.payments.count() == 0
        note = active_subscription.subscriber.notes.get()
        assert "5.50 USD" in note.content
        assert "was not recorded as a payment" in note.content

    def test_subscription_update_redelivery_is_duplicate(self, active_subscription, paddle):
        env = completed(origin="subscription_update", subscription_id="sub_01", total="550")
        handle(env)

        outcome = handle(env)

        assert outcome.status == OutcomeStatus.DUPLICATE
        assert active_subscription.subscriber.notes.count() == 1

    def test_subscription_update_keeps_billed_items_of_last_payment(self, recurring_invoice, paddle):
        """Should leave refunds targeting the items of the recorded charge, not the proration."""
        handle(
            completed(
                txn_id="txn_pay",
                public_id=recurring_invoice.public_id,
                subscription_id="sub_01",
                line_items=[{"id": "txnitm_pay", "totals": {"total": "1000"}}],
            )
        )

        handle(
            completed(
                txn_id="txn_upd",
                origin="subscription_update",
                subscription_id="sub_01",
                total="550",
                line_items=[{"id": "txnitm_proration", "totals": {"total": "550"}}],
            )
        )

        assert PaddleInvoiceData.objects.get(invoice=recurring_invoice).billed_line_items == ["txnitm_pay"]

    def test_duplicate_payment_keeps_billed_items(self, recurring_invoice, paddle):
        handle(completed(txn_id="txn_01", public_id=recurring_invoice.public_id, subscription_id="sub_01"))
        handle(
            completed(
                txn_id="txn_02",
                origin="subscription_recurring",
                subscription_id="sub_01",
                line_items=[{"id": "txnitm_02", "totals": {"total": "1000"}}],
            )
        )

        handle(completed(txn_id="txn_01", public_id=recurring_invoice.public_id, subscription_id="sub_01"))

        assert PaddleInvoiceData.objects.get(invoice=recurring_invoice).billed_line_items == ["txnitm_02"]


# =============================================================================
# Localized Currency
# =============================================================================


class TestLocalizedPayment:
    def test_stores_rate_and_records_invoice_amount(self, invoice, paddle):
        """Should record 10.00 USD for 9.20 EUR collected and keep the 0.92 rate."""
        handle(completed(public_id=invoice.public_id, total="920", currency="EUR"))

        data = PaddleInvoiceData.objects.get(invoice=invoice)
        assert data.xrate == Decimal("0.92")
        assert data.xcurrency == "EUR"
        assert invoice.payments.get().amount == Decimal("10.00")


# =============================================================================
# Routing Outcomes
# =============================================================================


@pytest.mark.django_db
class TestRoutingOutcomes:
    def test_non_billing_origin_is_ignored(self, invoice, paddle):
        outcome = handle(completed(public_id=invoice.public_id, origin="subscription_payment_method_change"))

        assert outcome.status == OutcomeStatus.IGNORED
        assert invoice.payments.count() == 0
        paddle.get_transaction.assert_not_called()

    def test_unknown_invoice_asks_for_retry(self, paddle):
        """Should answer 404 so Paddle redelivers once the invoice exists."""
        outcome = handle(completed(txn_id="txn_unknown"))

        assert outcome.status == OutcomeStatus.UNRESOLVED
        assert outcome.http_status == 404

    def test_missing_named_invoice_is_acknowledged(self, paddle):
        outcome = handle(completed(public_id="NOPE"))

        assert outcome.status == OutcomeStatus.POISON
        assert outcome.http_status == 200

    def test_missing_total_rolls_back(self, invoice, paddle):
        """Should undo every write when a required field is missing."""
        data = transaction_data(public_id=invoice.public_id)
        del data["details"]["totals"]["total"]

        with pytest.raises(MalformedEventError):
            handle(envelope("transaction.completed", data))

        invoice.refresh_from_db()
        assert invoice.status == InvoiceStatus.PENDING
        assert not PaddleInvoiceData.objects.filter(invoice=invoice).exists()
        assert not PaddleCustomerData.objects.filter(subscriber=invoice.subscriber).exists()

    @pytest.mark.parametrize(
        ("total", "line_total", "path"),
        [
            ("12x", "1000", "data.details.totals.total"),
            ("1000", "ten", "data.details.line_items.0.totals.total"),
        ],
    )
    def test_non_numeric_amount_is_malformed(self, invoice, paddle, total, line_total, path):
        """Should reject amounts that are not numbers and record nothing."""
        data = transaction_data(
            public_id=invoice.public_id,
            total=total,
            line_items=[{"id": "txnitm_01", "totals": {"total": line_total}}],
        )

        with pytest.raises(MalformedEventError) as exc_info:
            handle(envelope("transaction.completed", data))

        assert exc_info.value.details["path"] == path
        assert invoice.payments.count() == 0

    def test_classify_builds_transaction_handler(self):
        handler = classify(completed())

        assert isinstance(handler, TransactionHandler)

    def test_classify_unknown_event(self):
        assert classify(envelope("foo.bar", {"id": "x"})) is None
