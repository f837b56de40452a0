"""
Ledger service layer.

LedgerService is the only write path into the subscriber ledger. Payment
providers call it to record what happened remotely; the service keeps the
invoice status, rebill date and access periods consistent with those
records.

Inserts of payments, refunds, chargebacks and access periods raise
``RecordNotUnique`` when the same receipt was already recorded, and run in
their own savepoint so the caller's transaction stays usable.

Usage:
    from ledger.services import LedgerService

    invoice = LedgerService.find_invoice_by_public_id("INV-1001")
    payment = LedgerService.add_payment(
        invoice,
        receipt_id="txn_01h...",
        amount=Decimal("10.00"),
    )
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from django_fsm import can_proceed

from ledger.exceptions import InvoiceNotFound, RecordNotUnique
from ledger.models import (
    PADDLE_PAYSYS_ID,
    AccessPeriod,
    Invoice,
    InvoiceChargeback,
    InvoiceLog,
    InvoiceLogType,
    InvoicePayment,
    InvoiceRefund,
    InvoiceStatus,
    Subscriber,
    SubscriberNote,
)

if TYPE_CHECKING:
    from datetime import date

    from ledger.models import InvoiceItem


logger = logging.getLogger(__name__)

# Profile fields the backfill is allowed to fill in
SUBSCRIBER_PROFILE_FIELDS = ("name_f", "name_l", "country", "zip", "tax_id")


class LedgerService:
    """
    Service class for ledger operations.

    All methods are static - no instance state is maintained.
    """

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def find_invoice_by_public_id(public_id: str) -> Invoice | None:
        if not public_id:
            return None
        return (
            Invoice.objects.select_related("subscriber")
            .filter(public_id=public_id)
            .first()
        )

    @staticmethod
    def get_invoice(public_id: str) -> Invoice:
        """
        Get invoice by public id.

        Raises:
            InvoiceNotFound: If no invoice has this public id
        """
        invoice = LedgerService.find_invoice_by_public_id(public_id)
        if invoice is None:
            raise InvoiceNotFound(
                f"Invoice {public_id} not found",
                details={"public_id": public_id},
            )
        return invoice

    @staticmethod
    def find_invoice_by_receipt_id(
        receipt_id: str,
        paysys_id: str = PADDLE_PAYSYS_ID,
    ) -> Invoice | None:
        """
        Find the invoice a provider receipt was recorded against.

        Searches payments first, then access periods (free first periods are
        recorded as access only).
        """
        if not receipt_id:
            return None

        payment = (
            InvoicePayment.objects.select_related("invoice__subscriber")
            .filter(receipt_id=receipt_id, paysys_id=paysys_id)
            .first()
        )
        if payment is not None:
            return payment.invoice

        access = (
            AccessPeriod.objects.select_related("invoice__subscriber")
            .filter(transaction_id=receipt_id, invoice__paysys_id=paysys_id)
            .first()
        )
        return access.invoice if access is not None else None

    @staticmethod
    def get_items(invoice: Invoice) -> list[InvoiceItem]:
        return list(invoice.items.all())

    @staticmethod
    def payments_count(invoice: Invoice) -> int:
        return InvoicePayment.objects.filter(invoice=invoice).count()

    @staticmethod
    def total_paid(invoice: Invoice, receipt_id: str | None = None) -> Decimal:
        """Sum of recorded payments, optionally for one provider transaction."""
        payments = InvoicePayment.objects.filter(invoice=invoice)
        if receipt_id is not None:
            payments = payments.filter(receipt_id=receipt_id)
        return payments.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")

    # =========================================================================
    # Status
    # =========================================================================

    @staticmethod
    def set_status(invoice: Invoice, status: str) -> bool:
        """
        Move the invoice to ``status`` if its state machine allows it.

        Self-checking: a disallowed or no-op transition is logged and
        ignored. Returns True when the status changed.
        """
        if invoice.status == status:
            return False

        transitions = {
            InvoiceStatus.PAID: invoice.mark_paid,
            InvoiceStatus.RECURRING_ACTIVE: invoice.activate,
            InvoiceStatus.RECURRING_FAILED: invoice.mark_failed,
            InvoiceStatus.RECURRING_FINISHED: invoice.finish,
            InvoiceStatus.CANCELLED: invoice.cancel,
        }
        method = transitions.get(status)
        if method is None or not can_proceed(method):
            logger.info(
                f"Invoice {invoice.public_id}: transition {invoice.status} -> {status} not allowed",
                extra={"invoice_id": invoice.pk, "status": invoice.status, "target": status},
            )
            return False

        method()
        invoice.save(update_fields=["status", "rebill_date", "updated_at"])
        logger.info(
            f"Invoice {invoice.public_id} status set to {status}",
            extra={"invoice_id": invoice.pk, "status": status},
        )
        return True

    @staticmethod
    def set_cancelled(invoice: Invoice) -> bool:
        """Mark the invoice cancelled. Cancelling twice is a no-op."""
        return LedgerService.set_status(invoice, InvoiceStatus.CANCELLED)

    @staticmethod
    def set_rebill_date(invoice: Invoice, rebill_date: date | None) -> bool:
        if invoice.rebill_date == rebill_date:
            return False
        invoice.rebill_date = rebill_date
        invoice.save(update_fields=["rebill_date", "updated_at"])
        return True

    # =========================================================================
    # Payments & Access
    # =========================================================================

    @staticmethod
    def add_payment(
        invoice: Invoice,
        receipt_id: str,
        amount: Decimal | None = None,
        transaction_id: str = "",
        paysys_id: str = PADDLE_PAYSYS_ID,
    ) -> InvoicePayment:
        """
        Record a captured payment and provision access for it.

        ``amount`` defaults to the invoice's own total for this payment
        (first total for the first payment, second total afterwards). The
        rebill date is recomputed from today.

        Raises:
            RecordNotUnique: If ``receipt_id`` was already recorded on this invoice
        """
        with transaction.atomic():
            previous = LedgerService.payments_count(invoice)
            payment_number = previous + (1 if invoice.first_total > 0 else 2)
            if amount is None:
                amount = invoice.first_total if payment_number == 1 else invoice.second_total

            payment = LedgerService._insert(
                InvoicePayment,
                invoice=invoice,
                subscriber=invoice.subscriber,
                receipt_id=receipt_id,
                transaction_id=transaction_id or receipt_id,
                amount=amount,
                currency=invoice.currency,
                paysys_id=paysys_id,
            )

            today = timezone.localdate()
            period = invoice.period_for_payment(payment_number)
            LedgerService._insert(
                AccessPeriod,
                invoice=invoice,
                subscriber=invoice.subscriber,
                transaction_id=receipt_id,
                begin_date=today,
                expire_date=period.add_to(today),
            )

            if not invoice.is_recurring:
                LedgerService.set_status(invoice, InvoiceStatus.PAID)
            elif previous + 1 >= invoice.expected_payments_count:
                LedgerService.set_status(invoice, InvoiceStatus.RECURRING_FINISHED)
            else:
                LedgerService.set_status(invoice, InvoiceStatus.RECURRING_ACTIVE)
                LedgerService.set_rebill_date(invoice, period.add_to(today))

        logger.info(
            f"Payment {receipt_id} recorded on invoice {invoice.public_id}",
            extra={
                "invoice_id": invoice.pk,
                "receipt_id": receipt_id,
                "amount": str(amount),
                "currency": invoice.currency,
            },
        )
        return payment

    @staticmethod
    def add_access_period(
        invoice: Invoice,
        transaction_id: str,
        begin_date: date | None = None,
    ) -> AccessPeriod:
        """
        Grant access for the invoice's first period without a payment.

        Used for free first periods (trials). Recurring invoices become
        active with the rebill date at the end of the free period.

        Raises:
            RecordNotUnique: If access was already granted for ``transaction_id``
        """
        begin = begin_date or timezone.localdate()
        expire = invoice.period_for_payment(1).add_to(begin)

        with transaction.atomic():
            access = LedgerService._insert(
                AccessPeriod,
                invoice=invoice,
                subscriber=invoice.subscriber,
                transaction_id=transaction_id,
                begin_date=begin,
                expire_date=expire,
            )
            if invoice.is_recurring:
                LedgerService.set_status(invoice, InvoiceStatus.RECURRING_ACTIVE)
                LedgerService.set_rebill_date(invoice, expire)
            else:
                LedgerService.set_status(invoice, InvoiceStatus.PAID)

        logger.info(
            f"Access period granted on invoice {invoice.public_id} until {expire}",
            extra={"invoice_id": invoice.pk, "transaction_id": transaction_id},
        )
        return access

    @staticmethod
    def extend_access_period(invoice: Invoice, new_expire: date) -> bool:
        """
        Push the latest access period's expiry out to ``new_expire``.

        Never shortens access. Returns True when the expiry moved.
        """
        latest = invoice.access_periods.order_by("-expire_date").first()
        if latest is None or latest.expire_date >= new_expire:
            return False

        latest.expire_date = new_expire
        latest.save(update_fields=["expire_date", "updated_at"])
        return True

    # =========================================================================
    # Refunds & Chargebacks
    # =========================================================================

    @staticmethod
    def add_refund(
        invoice: Invoice,
        receipt_id: str,
        transaction_id: str,
        amount: Decimal,
        paysys_id: str = PADDLE_PAYSYS_ID,
    ) -> InvoiceRefund:
        """
        Record a refund of ``transaction_id`` keyed by the adjustment id.

        Raises:
            RecordNotUnique: If the adjustment was already recorded
        """
        refund = LedgerService._insert(
            InvoiceRefund,
            invoice=invoice,
            receipt_id=receipt_id,
            transaction_id=transaction_id,
            amount=amount,
            currency=invoice.currency,
            paysys_id=paysys_id,
        )
        logger.info(
            f"Refund {receipt_id} of {amount} {invoice.currency} recorded on invoice {invoice.public_id}",
            extra={"invoice_id": invoice.pk, "receipt_id": receipt_id, "transaction_id": transaction_id},
        )
        return refund

    @staticmethod
    def delete_refund(invoice: Invoice, transaction_id: str, receipt_id: str) -> int:
        """Remove a previously recorded refund. Returns the number of rows deleted."""
        deleted, _ = InvoiceRefund.objects.filter(
            invoice=invoice,
            transaction_id=transaction_id,
            receipt_id=receipt_id,
        ).delete()
        return deleted

    @staticmethod
    def add_chargeback(
        invoice: Invoice,
        receipt_id: str,
        transaction_id: str,
        paysys_id: str = PADDLE_PAYSYS_ID,
    ) -> InvoiceChargeback:
        """
        Record a chargeback of ``transaction_id``.

        Raises:
            RecordNotUnique: If the chargeback was already recorded
        """
        chargeback = LedgerService._insert(
            InvoiceChargeback,
            invoice=invoice,
            receipt_id=receipt_id,
            transaction_id=transaction_id,
            paysys_id=paysys_id,
        )
        logger.warning(
            f"Chargeback {receipt_id} recorded on invoice {invoice.public_id}",
            extra={"invoice_id": invoice.pk, "transaction_id": transaction_id},
        )
        return chargeback

    # =========================================================================
    # Subscribers
    # =========================================================================

    @staticmethod
    def add_note(subscriber: Subscriber, content: str) -> SubscriberNote:
        return SubscriberNote.objects.create(subscriber=subscriber, content=content)

    @staticmethod
    def add_note_once(subscriber: Subscriber, content: str) -> bool:
        """Add ``content`` unless the subscriber already has that exact note. True if added."""
        _, created = SubscriberNote.objects.get_or_create(subscriber=subscriber, content=content)
        return created

    @staticmethod
    def lock_subscriber(subscriber: Subscriber, locked: bool = True) -> None:
        if subscriber.is_locked == locked:
            return
        subscriber.is_locked = locked
        subscriber.save(update_fields=["is_locked", "updated_at"])
        logger.info(
            f"Subscriber {subscriber.pk} {'locked' if locked else 'unlocked'}",
            extra={"subscriber_id": subscriber.pk},
        )

    @staticmethod
    def update_subscriber(subscriber: Subscriber, **fields: str) -> list[str]:
        """
        Fill empty profile fields from ``fields``.

        Existing values are never overwritten. Returns the names of the
        fields that were filled.
        """
        updated = []
        for name in SUBSCRIBER_PROFILE_FIELDS:
            value = (fields.get(name) or "").strip()
            if value and not getattr(subscriber, name):
                setattr(subscriber, name, value)
                updated.append(name)

        if updated:
            subscriber.save(update_fields=[*updated, "updated_at"])
        return updated

    # =========================================================================
    # Audit Log
    # =========================================================================

    @staticmethod
    def log(
        title: str,
        entries: list[str],
        invoice: Invoice | None = None,
        paysys_id: str = PADDLE_PAYSYS_ID,
        remote_addr: str = "",
        log_type: str = InvoiceLogType.REQUEST,
    ) -> InvoiceLog:
        return InvoiceLog.objects.create(
            title=title,
            entries=entries,
            invoice=invoice,
            paysys_id=paysys_id,
            remote_addr=remote_addr,
            log_type=log_type,
        )

    # =========================================================================
    # Internal
    # =========================================================================

    @staticmethod
    def _insert(model, **values):
        """Create a row in its own savepoint, translating unique violations."""
        try:
            with transaction.atomic():
                return model.objects.create(**values)
        except IntegrityError as e:
            raise RecordNotUnique(
                f"{model.__name__} already recorded",
                details={
                    key: str(value.pk if hasattr(value, "pk") else value)
                    for key, value in values.items()
                    if key in ("invoice", "receipt_id", "transaction_id")
                },
            ) from e
