"""
Tests for subscription.updated / subscription.cancelled reconciliation.
"""

from datetime import date

import pytest
from freezegun import freeze_time

from ledger.models import InvoiceStatus
from ledger.tests.factories import AccessPeriodFactory
from payments.exceptions import MalformedEventError
from payments.webhooks.classifier import dispatch_webhook
from payments.webhooks.handlers import SubscriptionHandler
from payments.webhooks.protocols import OutcomeStatus
from payments.webhooks.tests.events import envelope, subscription_data


def updated(**kwargs):
    return envelope("subscription.updated", subscription_data(**kwargs))


def handle(env):
    return dispatch_webhook(SubscriptionHandler(env))


# =============================================================================
# Status Sync
# =============================================================================


class TestSubscriptionStatus:
    def test_active_restores_failed_invoice(self, active_subscription):
        """Should move a failed invoice back to active once Paddle collects."""
        active_subscription.status = InvoiceStatus.RECURRING_FAILED
        active_subscription.save()

        outcome = handle(updated(status="active"))

        active_subscription.refresh_from_db()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert active_subscription.status == InvoiceStatus.RECURRING_ACTIVE

    @pytest.mark.parametrize("status", ["paused", "past_due"])
    def test_paused_and_past_due_mark_failed(self, active_subscription, status):
        handle(updated(status=status))

        active_subscription.refresh_from_db()
        assert active_subscription.status == InvoiceStatus.RECURRING_FAILED

    def test_unmapped_status_keeps_invoice_status(self, active_subscription):
        handle(updated(status="canceled"))

        active_subscription.refresh_from_db()
        assert active_subscription.status == InvoiceStatus.RECURRING_ACTIVE

    def test_resolves_by_custom_data(self, recurring_invoice):
        """Should find invoices not yet linked to the subscription through custom data."""
        outcome = handle(updated(sub_id="sub_new", public_id=recurring_invoice.public_id))

        assert outcome.invoice == recurring_invoice

    @pytest.mark.django_db
    def test_unknown_subscription_is_unresolved(self):
        outcome = handle(updated(sub_id="sub_unknown"))

        assert outcome.status == OutcomeStatus.UNRESOLVED


# =============================================================================
# Rebill Date & Dunning
# =============================================================================


@freeze_time("2024-03-09")
class TestRebillDate:
    def test_syncs_rebill_date(self, active_subscription):
        handle(updated(next_billed_at="2024-03-15T10:00:00Z"))

        active_subscription.refresh_from_db()
        assert active_subscription.rebill_date == date(2024, 3, 15)

    def test_accepts_fractional_seconds(self, active_subscription):
        handle(updated(next_billed_at="2024-03-15T10:00:00.123456Z"))

        active_subscription.refresh_from_db()
        assert active_subscription.rebill_date == date(2024, 3, 15)

    def test_dunning_extends_access_to_next_retry(self, active_subscription):
        """Should keep access open until Paddle's next charge attempt."""
        AccessPeriodFactory(
            invoice=active_subscription,
            begin_date=date(2024, 2, 10),
            expire_date=date(2024, 3, 10),
        )

        handle(updated(status="past_due", next_billed_at="2024-03-15T10:00:00Z"))

        active_subscription.refresh_from_db()
        assert active_subscription.status == InvoiceStatus.RECURRING_FAILED
        assert active_subscription.access_expire == date(2024, 3, 15)

    def test_dunning_never_shortens_access(self, active_subscription):
        AccessPeriodFactory(
            invoice=active_subscription,
            begin_date=date(2024, 3, 1),
            expire_date=date(2024, 4, 1),
        )

        handle(updated(status="past_due", next_billed_at="2024-03-15T10:00:00Z"))

        assert active_subscription.access_expire == date(2024, 4, 1)

    def test_invalid_next_billed_at_rolls_back(self, active_subscription):
        """Should reject the event and undo the status change made before parsing the date."""
        with pytest.raises(MalformedEventError):
            handle(updated(status="past_due", next_billed_at="next tuesday"))

        active_subscription.refresh_from_db()
        assert active_subscription.status == InvoiceStatus.RECURRING_ACTIVE
        assert active_subscription.rebill_date is None


# =============================================================================
# Cancellation
# =============================================================================


class TestSubscriptionCancelled:
    def test_cancels_invoice(self, active_subscription):
        outcome = handle(envelope("subscription.cancelled", subscription_data(status="canceled")))

        active_subscription.refresh_from_db()
        assert outcome.status == OutcomeStatus.PROCESSED
        assert active_subscription.status == InvoiceStatus.CANCELLED
        assert active_subscription.rebill_date is None

    def test_second_cancellation_is_duplicate(self, active_subscription):
        env = envelope("subscription.cancelled", subscription_data(status="canceled"))
        handle(env)

        outcome = handle(env)

        assert outcome.status == OutcomeStatus.DUPLICATE
