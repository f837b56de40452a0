"""
transaction.completed: payment capture and access provisioning.

A completed transaction is Paddle's word that money was collected (or a
free trial started). The handler stores the Paddle correlation ids,
backfills the subscriber profile, records the payment or free access
period once, and stops the Paddle subscription when the invoice has
received every payment it expects; Paddle subscriptions otherwise run
until cancelled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ledger.models import InvoiceStatus
from ledger.services import LedgerService
from payments.adapters import PaddleAdapter
from payments.currency import resolve_amount
from payments.exceptions import PaddleError
from payments.idempotency import apply_once
from payments.models import PaddleCustomerData, PaddleInvoiceData
from payments.services import SubscriptionCancellationService
from payments.webhooks.classifier import register_handler
from payments.webhooks.envelope import EventType
from payments.webhooks.protocols import HandlerOutcome
from payments.webhooks.resolver import InvoiceResolver

if TYPE_CHECKING:
    from decimal import Decimal

    from ledger.models import Invoice, Subscriber
    from payments.audit import AuditLog
    from payments.webhooks.envelope import EventEnvelope
    from payments.webhooks.resolver import Resolution


logger = logging.getLogger(__name__)

# Origins that represent a billing event. Payment-method changes are not.
BILLING_ORIGINS = frozenset(
    {
        "api",
        "web",
        "subscription_recurring",
        "subscription_charge",
        "subscription_update",
    }
)

# A plan change mid-subscription: noted on the account, never a payment
SUBSCRIPTION_UPDATE_ORIGIN = "subscription_update"


def subscriber_fields_from_transaction(transaction: dict[str, Any]) -> dict[str, str]:
    """
    Profile fields from a transaction fetched with address, business and
    customer included.

    The customer name is free text: everything before the first space is
    the first name, the rest the last name.
    """
    customer = transaction.get("customer") or {}
    address = transaction.get("address") or {}
    business = transaction.get("business") or {}
    name_f, _, name_l = (customer.get("name") or "").strip().partition(" ")
    return {
        "name_f": name_f,
        "name_l": name_l.strip(),
        "country": address.get("country_code") or "",
        "zip": address.get("postal_code") or "",
        "tax_id": business.get("tax_identifier") or "",
    }


@register_handler(EventType.TRANSACTION_COMPLETED)
class TransactionHandler:
    """Reconciles transaction.completed notifications."""

    def __init__(self, envelope: EventEnvelope, audit: AuditLog | None = None):
        self.envelope = envelope
        self.audit = audit

    @property
    def receipt_id(self) -> str:
        return str(self.envelope.require("id"))

    @property
    def origin(self) -> str:
        return str(self.envelope.get("origin", default=""))

    def validate_status(self) -> bool:
        return self.origin in BILLING_ORIGINS

    def resolve_invoice(self) -> Resolution:
        return InvoiceResolver.resolve(
            custom_data=self.envelope.get("custom_data", default={}),
            subscription_id=self.envelope.get("subscription_id"),
            receipt_id=self.receipt_id,
        )

    def amount(self, invoice: Invoice) -> Decimal | None:
        currency = self.envelope.require("currency_code")
        total = self.envelope.require_amount("details", "totals", "total", currency=currency)
        return resolve_amount(invoice, total, currency)

    def billed_line_items(self) -> list[str]:
        """Ids of the line items Paddle charged for, in the order it lists them."""
        currency = self.envelope.require("currency_code")
        line_items = self.envelope.require("details", "line_items")
        billed = []
        for index, item in enumerate(line_items):
            if not isinstance(item, dict) or not item.get("id"):
                continue
            total = self.envelope.parse_amount(
                (item.get("totals") or {}).get("total") or 0,
                currency,
                "details", "line_items", str(index), "totals", "total",
            )
            if total > 0:
                billed.append(item["id"])
        return billed

    def process_validated(self, invoice: Invoice) -> HandlerOutcome:
        receipt_id = self.receipt_id
        subscription_id = str(self.envelope.get("subscription_id", default=""))
        billed = self.billed_line_items()
        log_context = {"invoice_id": invoice.pk, "receipt_id": receipt_id, "event_id": self.envelope.event_id}

        # Store the subscription first: a subscription.* notification may be
        # racing this one and can only find the invoice through it
        self._store_subscription_id(invoice, subscription_id)

        subscriber = invoice.subscriber
        self._backfill_subscriber(invoice, subscriber, receipt_id)
        PaddleCustomerData.for_subscriber(subscriber).update_ids(
            customer_id=self.envelope.get("customer_id"),
            address_id=self.envelope.get("address_id"),
            business_id=self.envelope.get("business_id"),
        )

        free_start = self._is_free_start(invoice, receipt_id)
        if self.origin == SUBSCRIPTION_UPDATE_ORIGIN and not free_start:
            if not self._note_subscription_update(invoice, receipt_id):
                return HandlerOutcome.duplicate(f"Subscription update {receipt_id} already noted", invoice)
            return HandlerOutcome.processed(f"Subscription update {receipt_id} noted", invoice)

        if free_start:
            applied = apply_once(
                lambda: LedgerService.add_access_period(invoice, transaction_id=receipt_id),
                label="access period",
                context=log_context,
            )
        else:
            amount = self.amount(invoice)
            applied = apply_once(
                lambda: LedgerService.add_payment(
                    invoice,
                    receipt_id=receipt_id,
                    amount=amount,
                    transaction_id=self.envelope.event_id or receipt_id,
                ),
                label="payment",
                context=log_context,
            )
            if applied and subscription_id:
                self._cancel_if_complete(invoice, subscription_id)

        if not applied:
            return HandlerOutcome.duplicate(f"Transaction {receipt_id} already recorded", invoice)

        # Refund requests target the items of the latest recorded charge
        self._store_billed_items(invoice, billed)
        return HandlerOutcome.processed(f"Transaction {receipt_id} recorded", invoice)

    # =========================================================================
    # Steps
    # =========================================================================

    def _store_subscription_id(self, invoice: Invoice, subscription_id: str) -> None:
        data = PaddleInvoiceData.for_invoice(invoice)
        if subscription_id and data.subscription_id != subscription_id:
            data.subscription_id = subscription_id
            data.save(update_fields=["subscription_id", "updated_at"])

    def _store_billed_items(self, invoice: Invoice, billed: list[str]) -> None:
        data = PaddleInvoiceData.for_invoice(invoice)
        data.billed_line_items = billed
        data.save(update_fields=["billed_line_items", "updated_at"])

    def _backfill_subscriber(self, invoice: Invoice, subscriber: Subscriber, receipt_id: str) -> None:
        """Fill empty profile fields from Paddle. Failures never block the payment."""
        try:
            transaction = PaddleAdapter.get_transaction(
                receipt_id,
                include=("address", "business", "customer"),
                invoice=invoice,
            )
        except PaddleError as e:
            logger.warning(
                f"Subscriber backfill skipped for transaction {receipt_id}: {e}",
                extra={"invoice_id": invoice.pk, "receipt_id": receipt_id},
            )
            return

        updated = LedgerService.update_subscriber(subscriber, **subscriber_fields_from_transaction(transaction))
        if updated:
            logger.info(
                f"Subscriber {subscriber.pk} backfilled: {', '.join(updated)}",
                extra={"subscriber_id": subscriber.pk, "fields": updated},
            )

    def _is_free_start(self, invoice: Invoice, receipt_id: str) -> bool:
        """
        True for the transaction that starts a free first period.

        A redelivery finds the invoice no longer pending, so it is
        recognised by the access period it already created.
        """
        if invoice.first_total > 0:
            return False
        if invoice.status == InvoiceStatus.PENDING:
            return True
        return invoice.access_periods.filter(transaction_id=receipt_id).exists()

    def _note_subscription_update(self, invoice: Invoice, receipt_id: str) -> bool:
        """Note a plan-change charge once. False when it was already noted."""
        currency = self.envelope.require("currency_code")
        total = self.envelope.get_amount("details", "totals", "total", currency=currency)
        note = (
            f"Paddle subscription update transaction {receipt_id} of "
            f"{total} {currency} for invoice "
            f"#{invoice.pk}/{invoice.public_id} was not recorded as a payment."
        )
        if not LedgerService.add_note_once(invoice.subscriber, note):
            return False
        if self.audit is not None:
            self.audit.add(note)
        return True

    def _cancel_if_complete(self, invoice: Invoice, subscription_id: str) -> None:
        expected = invoice.expected_payments_count
        if LedgerService.payments_count(invoice) < expected:
            return

        message = f"All {expected} payments made for subscription_id: {subscription_id}"
        logger.info(message, extra={"invoice_id": invoice.pk, "subscription_id": subscription_id})
        if self.audit is not None:
            self.audit.add(message)

        result = SubscriptionCancellationService.cancel(invoice, subscription_id=subscription_id)
        if not result:
            failure = f"Unable to cancel subscription_id: {subscription_id} - {result.error}"
            logger.warning(failure, extra={"invoice_id": invoice.pk, "subscription_id": subscription_id})
            if self.audit is not None:
                self.audit.add(failure)
