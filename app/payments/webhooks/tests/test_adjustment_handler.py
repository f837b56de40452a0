"""
Tests for adjustment.created / adjustment.updated reconciliation.
"""

from decimal import Decimal

import pytest

from ledger.tests.factories import InvoicePaymentFactory
from payments.exceptions import MalformedEventError
from payments.tests.factories import PaddleInvoiceDataFactory
from payments.webhooks.classifier import dispatch_webhook
from payments.webhooks.handlers import AdjustmentHandler
from payments.webhooks.handlers.adjustment import (
    CHARGEBACK_NOTE,
    CHARGEBACK_REVERSE_NOTE,
    CHARGEBACK_REVERSE_UNLOCK_NOTE,
    CHARGEBACK_WARNING_NOTE,
)
from payments.webhooks.protocols import OutcomeStatus
from payments.webhooks.tests.events import adjustment_data, envelope


def adjustment(event_type="adjustment.created", **kwargs):
    return envelope(event_type, adjustment_data(**kwargs))


def handle(env):
    return dispatch_webhook(AdjustmentHandler(env))


@pytest.fixture
def paid_invoice(invoice):
    """Invoice paid with Paddle transaction txn_01."""
    InvoicePaymentFactory(invoice=invoice, receipt_id="txn_01", amount=Decimal("10.00"))
    return invoice


# =============================================================================
# Refunds
# =============================================================================


class TestRefund:
    def test_records_refund(self, paid_invoice):
        outcome = handle(adjustment(total="500"))

        refund = paid_invoice.refunds.get()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert refund.amount == Decimal("5.00")
        assert refund.receipt_id == "adj_01"
        assert refund.transaction_id == "txn_01"

    def test_approval_update_is_duplicate(self, paid_invoice):
        """Should not record the refund again when Paddle approves it."""
        handle(adjustment(total="500"))

        outcome = handle(adjustment("adjustment.updated", total="500", status="approved"))

        assert outcome.status == OutcomeStatus.DUPLICATE
        assert paid_invoice.refunds.count() == 1

    def test_rejected_refund_is_retracted(self, paid_invoice):
        handle(adjustment(total="500"))

        outcome = handle(adjustment("adjustment.updated", total="500", status="rejected"))

        assert outcome.status == OutcomeStatus.PROCESSED
        assert paid_invoice.refunds.count() == 0

    def test_rejected_refund_never_recorded(self, paid_invoice):
        outcome = handle(adjustment("adjustment.updated", status="rejected"))

        assert outcome.status == OutcomeStatus.DUPLICATE

    def test_caps_at_amount_paid(self, paid_invoice):
        """Should never refund more than the transaction paid."""
        handle(adjustment(total="1500"))

        assert paid_invoice.refunds.get().amount == Decimal("10.00")

    def test_converts_with_stored_rate(self, paid_invoice):
        """Should net a localized refund out against the payment it reverses."""
        PaddleInvoiceDataFactory(invoice=paid_invoice, xrate=Decimal("0.92"), xcurrency="EUR")

        handle(adjustment(total="920", currency="EUR"))

        assert paid_invoice.refunds.get().amount == Decimal("10.00")

    def test_missing_total_is_malformed(self, paid_invoice):
        data = adjustment_data()
        del data["totals"]

        with pytest.raises(MalformedEventError):
            handle(envelope("adjustment.created", data))

        assert paid_invoice.refunds.count() == 0

    def test_non_numeric_total_is_malformed(self, paid_invoice):
        with pytest.raises(MalformedEventError) as exc_info:
            handle(adjustment(total="5,00"))

        assert exc_info.value.details["path"] == "data.totals.total"
        assert paid_invoice.refunds.count() == 0


# =============================================================================
# Chargebacks
# =============================================================================


class TestChargeback:
    def test_locks_subscriber_when_enabled(self, paid_invoice, settings):
        settings.PADDLE_LOCK_ON_CHARGEBACK = True

        outcome = handle(adjustment(action="chargeback", status="approved"))

        subscriber = paid_invoice.subscriber
        subscriber.refresh_from_db()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert paid_invoice.chargebacks.count() == 1
        assert subscriber.is_locked
        assert subscriber.notes.get().content == CHARGEBACK_NOTE

    def test_redelivery_adds_nothing(self, paid_invoice, settings):
        settings.PADDLE_LOCK_ON_CHARGEBACK = True
        env = adjustment(action="chargeback", status="approved")
        handle(env)

        outcome = handle(env)

        assert outcome.status == OutcomeStatus.DUPLICATE
        assert paid_invoice.chargebacks.count() == 1
        assert paid_invoice.subscriber.notes.count() == 1

    def test_records_without_lock_by_default(self, paid_invoice):
        handle(adjustment(action="chargeback", status="approved"))

        subscriber = paid_invoice.subscriber
        subscriber.refresh_from_db()
        assert paid_invoice.chargebacks.count() == 1
        assert not subscriber.is_locked
        assert not subscriber.notes.exists()

    def test_warning_locks_when_enabled(self, paid_invoice, settings):
        settings.PADDLE_LOCK_ON_CHARGEBACK_WARNING = True

        handle(adjustment(action="chargeback_warning"))

        subscriber = paid_invoice.subscriber
        subscriber.refresh_from_db()
        assert subscriber.is_locked
        assert subscriber.notes.get().content == CHARGEBACK_WARNING_NOTE
        assert paid_invoice.chargebacks.count() == 0

    def test_reverse_unlocks_when_enabled(self, paid_invoice, settings):
        settings.PADDLE_UNLOCK_ON_CHARGEBACK_REVERSE = True
        subscriber = paid_invoice.subscriber
        subscriber.is_locked = True
        subscriber.save()

        handle(adjustment(action="chargeback_reverse"))

        subscriber.refresh_from_db()
        assert not subscriber.is_locked
        assert subscriber.notes.get().content == CHARGEBACK_REVERSE_UNLOCK_NOTE

    def test_reverse_keeps_lock_by_default(self, paid_invoice):
        subscriber = paid_invoice.subscriber
        subscriber.is_locked = True
        subscriber.save()

        handle(adjustment(action="chargeback_reverse"))

        subscriber.refresh_from_db()
        assert subscriber.is_locked
        assert subscriber.notes.get().content == CHARGEBACK_REVERSE_NOTE


# =============================================================================
# Credits & Unknown Actions
# =============================================================================


class TestOtherActions:
    def test_credit_is_noted(self, paid_invoice):
        handle(adjustment(action="credit", total="500"))

        note = paid_invoice.subscriber.notes.get()
        assert note.content == (
            f"Paddle issued credit adj_01 of 5.00 USD for invoice #{paid_invoice.pk}/{paid_invoice.public_id}."
        )
        assert paid_invoice.refunds.count() == 0

    def test_credit_reverse_is_noted(self, paid_invoice):
        handle(adjustment(action="credit_reverse", total="500"))

        assert "reversed credit adj_01" in paid_invoice.subscriber.notes.get().content

    def test_credit_redelivery_is_duplicate(self, paid_invoice):
        """Should note a credit once however often Paddle delivers it."""
        env = adjustment(action="credit", total="500")
        handle(env)

        outcome = handle(env)

        assert outcome.status == OutcomeStatus.DUPLICATE
        assert paid_invoice.subscriber.notes.count() == 1

    def test_separate_credits_are_both_noted(self, paid_invoice):
        handle(adjustment("adjustment.created", adj_id="adj_01", action="credit", total="500"))
        handle(adjustment("adjustment.created", adj_id="adj_02", action="credit", total="500"))

        assert paid_invoice.subscriber.notes.count() == 2

    def test_unknown_action_is_ignored(self, paid_invoice):
        outcome = handle(adjustment(action="goodwill"))

        assert outcome.status == OutcomeStatus.IGNORED
        assert not paid_invoice.subscriber.notes.exists()

    @pytest.mark.django_db
    def test_unknown_transaction_is_unresolved(self):
        outcome = handle(adjustment(transaction_id="txn_unknown"))

        assert outcome.status == OutcomeStatus.UNRESOLVED
