"""
adjustment.created / adjustment.updated: credits, refunds and chargebacks.

Refund adjustments are created pending approval and updated once Paddle
approves or rejects them, so the refund is recorded as soon as it is
created and retracted if it is rejected.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from django.conf import settings

from ledger.services import LedgerService
from payments.currency import convert_with_stored_rate
from payments.idempotency import apply_once
from payments.webhooks.classifier import register_handler
from payments.webhooks.envelope import EventType
from payments.webhooks.protocols import HandlerOutcome
from payments.webhooks.resolver import InvoiceResolver

if TYPE_CHECKING:
    from ledger.models import Invoice
    from payments.audit import AuditLog
    from payments.webhooks.envelope import EventEnvelope
    from payments.webhooks.resolver import Resolution


logger = logging.getLogger(__name__)


class AdjustmentAction(str, Enum):
    """Paddle adjustment actions."""

    CREDIT = "credit"
    CREDIT_REVERSE = "credit_reverse"
    REFUND = "refund"
    CHARGEBACK = "chargeback"
    CHARGEBACK_WARNING = "chargeback_warning"
    CHARGEBACK_REVERSE = "chargeback_reverse"


HANDLED_ACTIONS = frozenset(action.value for action in AdjustmentAction)

REFUND_REJECTED = "rejected"

CHARGEBACK_NOTE = "Payment was disputed and a chargeback was received. User account disabled."
CHARGEBACK_WARNING_NOTE = "Paddle received early warning of an upcoming chargeback. User account disabled."
CHARGEBACK_REVERSE_NOTE = "Paddle reversed the chargeback."
CHARGEBACK_REVERSE_UNLOCK_NOTE = "Paddle reversed the chargeback. User account unlocked."


@register_handler(EventType.ADJUSTMENT_CREATED, EventType.ADJUSTMENT_UPDATED)
class AdjustmentHandler:
    """Reconciles adjustment notifications."""

    def __init__(self, envelope: EventEnvelope, audit: AuditLog | None = None):
        self.envelope = envelope
        self.audit = audit

    @property
    def adjustment_id(self) -> str:
        return str(self.envelope.require("id"))

    @property
    def receipt_id(self) -> str:
        """The adjusted Paddle transaction."""
        return str(self.envelope.require("transaction_id"))

    @property
    def action(self) -> str:
        return str(self.envelope.get("action", default=""))

    def validate_status(self) -> bool:
        return self.action in HANDLED_ACTIONS

    def resolve_invoice(self) -> Resolution:
        return InvoiceResolver.resolve(
            custom_data={},
            subscription_id=self.envelope.get("subscription_id"),
            receipt_id=self.receipt_id,
        )

    @property
    def currency(self) -> str:
        return str(self.envelope.get("totals", "currency_code") or self.envelope.require("currency_code"))

    def event_amount(self) -> Decimal:
        """Adjustment total in its own currency."""
        return self.envelope.require_amount("totals", "total", currency=self.currency)

    def amount(self, invoice: Invoice) -> Decimal:
        """Adjustment total in the invoice currency, using the rate of the original payment."""
        return convert_with_stored_rate(invoice, self.event_amount(), self.currency)

    def process_validated(self, invoice: Invoice) -> HandlerOutcome:
        action = self.action
        if action in (AdjustmentAction.CREDIT, AdjustmentAction.CREDIT_REVERSE):
            return self._credit(invoice, action)
        if action == AdjustmentAction.REFUND:
            return self._refund(invoice)
        if action == AdjustmentAction.CHARGEBACK:
            return self._chargeback(invoice)
        if action == AdjustmentAction.CHARGEBACK_WARNING:
            return self._chargeback_warning(invoice)
        return self._chargeback_reverse(invoice)

    # =========================================================================
    # Actions
    # =========================================================================

    def _credit(self, invoice: Invoice, action: str) -> HandlerOutcome:
        adjustment_id = self.adjustment_id
        verb = "issued" if action == AdjustmentAction.CREDIT else "reversed"
        note = (
            f"Paddle {verb} credit {adjustment_id} of {self.event_amount()} {self.currency} "
            f"for invoice #{invoice.pk}/{invoice.public_id}."
        )
        if not LedgerService.add_note_once(invoice.subscriber, note):
            return HandlerOutcome.duplicate(f"Credit {adjustment_id} already noted", invoice)
        if self.audit is not None:
            self.audit.add(note)
        return HandlerOutcome.processed(f"Credit {adjustment_id} noted", invoice)

    def _refund(self, invoice: Invoice) -> HandlerOutcome:
        adjustment_id = self.adjustment_id
        receipt_id = self.receipt_id

        if self.envelope.get("status") == REFUND_REJECTED:
            deleted = LedgerService.delete_refund(invoice, transaction_id=receipt_id, receipt_id=adjustment_id)
            if not deleted:
                return HandlerOutcome.duplicate(f"Rejected refund {adjustment_id} was not recorded", invoice)
            logger.info(
                f"Rejected refund {adjustment_id} removed from invoice {invoice.public_id}",
                extra={"invoice_id": invoice.pk, "adjustment_id": adjustment_id},
            )
            return HandlerOutcome.processed(f"Refund {adjustment_id} retracted", invoice)

        amount = self.amount(invoice)
        paid = LedgerService.total_paid(invoice, receipt_id=receipt_id)
        if paid > Decimal("0") and amount > paid:
            logger.warning(
                f"Refund {adjustment_id} of {amount} capped at {paid} paid for {receipt_id}",
                extra={"invoice_id": invoice.pk, "adjustment_id": adjustment_id},
            )
            amount = paid

        applied = apply_once(
            lambda: LedgerService.add_refund(
                invoice,
                receipt_id=adjustment_id,
                transaction_id=receipt_id,
                amount=amount,
            ),
            label="refund",
            context={"invoice_id": invoice.pk, "adjustment_id": adjustment_id},
        )
        if not applied:
            return HandlerOutcome.duplicate(f"Refund {adjustment_id} already recorded", invoice)
        return HandlerOutcome.processed(f"Refund {adjustment_id} recorded", invoice)

    def _chargeback(self, invoice: Invoice) -> HandlerOutcome:
        adjustment_id = self.adjustment_id
        applied = apply_once(
            lambda: LedgerService.add_chargeback(
                invoice,
                receipt_id=adjustment_id,
                transaction_id=self.receipt_id,
            ),
            label="chargeback",
            context={"invoice_id": invoice.pk, "adjustment_id": adjustment_id},
        )
        if not applied:
            return HandlerOutcome.duplicate(f"Chargeback {adjustment_id} already recorded", invoice)

        if settings.PADDLE_LOCK_ON_CHARGEBACK:
            self._note_subscriber(invoice, CHARGEBACK_NOTE)
            LedgerService.lock_subscriber(invoice.subscriber, locked=True)
        return HandlerOutcome.processed(f"Chargeback {adjustment_id} recorded", invoice)

    def _chargeback_warning(self, invoice: Invoice) -> HandlerOutcome:
        if not settings.PADDLE_LOCK_ON_CHARGEBACK_WARNING:
            return HandlerOutcome.processed("Chargeback warning received", invoice)
        self._note_subscriber(invoice, CHARGEBACK_WARNING_NOTE)
        LedgerService.lock_subscriber(invoice.subscriber, locked=True)
        return HandlerOutcome.processed("Chargeback warning: subscriber locked", invoice)

    def _chargeback_reverse(self, invoice: Invoice) -> HandlerOutcome:
        if not settings.PADDLE_UNLOCK_ON_CHARGEBACK_REVERSE:
            self._note_subscriber(invoice, CHARGEBACK_REVERSE_NOTE)
            return HandlerOutcome.processed("Chargeback reversed", invoice)
        self._note_subscriber(invoice, CHARGEBACK_REVERSE_UNLOCK_NOTE)
        LedgerService.lock_subscriber(invoice.subscriber, locked=False)
        return HandlerOutcome.processed("Chargeback reversed: subscriber unlocked", invoice)

    def _note_subscriber(self, invoice: Invoice, note: str) -> None:
        LedgerService.add_note(invoice.subscriber, note)
        if self.audit is not None:
            self.audit.add(note)
