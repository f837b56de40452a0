"""
subscription.updated / subscription.cancelled: recurring status and dunning.

Paddle owns the billing schedule. These notifications keep the invoice's
recurring status and rebill date in line with it, and keep access open
while Paddle retries a failed charge.
"""

from __future__ import annotations

import logging
from datetime import timezone as dt_timezone
from typing import TYPE_CHECKING

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ledger.models import InvoiceStatus
from ledger.services import LedgerService
from payments.exceptions import MalformedEventError
from payments.webhooks.classifier import register_handler
from payments.webhooks.envelope import EventType
from payments.webhooks.protocols import HandlerOutcome
from payments.webhooks.resolver import InvoiceResolver

if TYPE_CHECKING:
    from datetime import date
    from decimal import Decimal

    from ledger.models import Invoice
    from payments.audit import AuditLog
    from payments.webhooks.envelope import EventEnvelope
    from payments.webhooks.resolver import Resolution


logger = logging.getLogger(__name__)

# Paddle subscription status -> invoice status
STATUS_MAP = {
    "active": InvoiceStatus.RECURRING_ACTIVE,
    "trialing": InvoiceStatus.RECURRING_ACTIVE,
    "paused": InvoiceStatus.RECURRING_FAILED,
    "past_due": InvoiceStatus.RECURRING_FAILED,
}

# Paddle retries the charge while the subscription is past due
DUNNING_STATUS = "past_due"


@register_handler(EventType.SUBSCRIPTION_UPDATED, EventType.SUBSCRIPTION_CANCELLED)
class SubscriptionHandler:
    """Reconciles subscription lifecycle notifications."""

    def __init__(self, envelope: EventEnvelope, audit: AuditLog | None = None):
        self.envelope = envelope
        self.audit = audit

    @property
    def subscription_id(self) -> str:
        return str(self.envelope.require("id"))

    @property
    def status(self) -> str:
        return str(self.envelope.get("status", default=""))

    def validate_status(self) -> bool:
        return True

    def resolve_invoice(self) -> Resolution:
        return InvoiceResolver.resolve(
            custom_data=self.envelope.get("custom_data", default={}),
            subscription_id=self.subscription_id,
            receipt_id=self.envelope.get("transaction_id"),
        )

    def amount(self, invoice: Invoice) -> Decimal | None:
        return None

    def process_validated(self, invoice: Invoice) -> HandlerOutcome:
        if self.envelope.event_type == EventType.SUBSCRIPTION_CANCELLED:
            if LedgerService.set_cancelled(invoice):
                self._note(f"Invoice #{invoice.pk}/{invoice.public_id} - cancelled by Paddle")
                return HandlerOutcome.processed(f"Subscription {self.subscription_id} cancelled", invoice)
            return HandlerOutcome.duplicate(f"Invoice {invoice.public_id} not cancellable", invoice)

        status = self.status
        target = STATUS_MAP.get(status)
        if target is not None:
            LedgerService.set_status(invoice, target)

        rebill_date = self._next_billed_date()
        if rebill_date is not None and LedgerService.set_rebill_date(invoice, rebill_date):
            self._note(f"Invoice #{invoice.pk}/{invoice.public_id} - rebill date set to: {rebill_date}")

        if status == DUNNING_STATUS and invoice.rebill_date is not None:
            self._extend_for_dunning(invoice)

        return HandlerOutcome.processed(f"Subscription {self.subscription_id} {status or 'updated'}", invoice)

    # =========================================================================
    # Steps
    # =========================================================================

    def _next_billed_date(self) -> date | None:
        """
        Date part of next_billed_at, or None when Paddle sent none.

        Raises:
            MalformedEventError: If next_billed_at is not an RFC 3339 datetime
        """
        value = self.envelope.get("next_billed_at")
        if not value:
            return None

        try:
            parsed = parse_datetime(str(value))
        except ValueError:
            parsed = None
        if parsed is None:
            raise MalformedEventError(
                f"{self.envelope.event_type} has an invalid next_billed_at",
                details={"event_id": self.envelope.event_id, "next_billed_at": value},
            )

        if timezone.is_naive(parsed):
            parsed = timezone.make_aware(parsed, dt_timezone.utc)
        return timezone.localdate(parsed)

    def _extend_for_dunning(self, invoice: Invoice) -> None:
        """Keep access open until the next retry. Never shortens access."""
        expire = invoice.access_expire
        if expire is not None and expire >= invoice.rebill_date:
            return
        if LedgerService.extend_access_period(invoice, invoice.rebill_date):
            self._note(
                f"Invoice #{invoice.pk}/{invoice.public_id} - access extended while in dunning: {invoice.rebill_date}"
            )

    def _note(self, message: str) -> None:
        logger.info(message, extra={"event_id": self.envelope.event_id, "subscription_id": self.subscription_id})
        if self.audit is not None:
            self.audit.add(message)
