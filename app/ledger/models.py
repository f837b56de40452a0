"""
Ledger models for subscriber billing records.

- Subscriber: the paying account (the person who owns invoices)
- Invoice / InvoiceItem: what was sold and on which billing terms
- InvoicePayment / InvoiceRefund / InvoiceChargeback: money movements,
  each unique per (invoice, receipt_id)
- AccessPeriod: the dates a subscriber has access for, unique per
  (invoice, transaction_id)
- SubscriberNote: free-text notes for operators
- InvoiceLog: audit trail of remote requests and inbound notifications

The unique constraints on the money-movement and access tables are what
makes redelivered provider notifications harmless: a second insert for the
same receipt fails at the database and the ledger reports it as
``RecordNotUnique``.

Usage:
    from ledger.models import Invoice, InvoiceStatus

    invoice = Invoice.objects.get(public_id="INV-1001")
    invoice.expected_payments_count  # 3 for a first payment plus two rebills
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Max

from django_fsm import FSMField, transition

from core.models import BaseModel
from ledger.periods import Period

# Sentinel rebill count for subscriptions that run until cancelled
RECURRING_REBILLS = 99999

PADDLE_PAYSYS_ID = "paddle"


class InvoiceStatus(models.TextChoices):
    """
    States for the Invoice lifecycle.

    State Flow (one-time):
        PENDING → PAID

    State Flow (recurring):
        PENDING → RECURRING_ACTIVE ⇄ RECURRING_FAILED
        RECURRING_ACTIVE/RECURRING_FAILED → RECURRING_FINISHED

    Cancellation Flow:
        PENDING/RECURRING_ACTIVE/RECURRING_FAILED → CANCELLED
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    RECURRING_ACTIVE = "recurring_active", "Recurring Active"
    RECURRING_FAILED = "recurring_failed", "Recurring Failed"
    RECURRING_FINISHED = "recurring_finished", "Recurring Finished"
    CANCELLED = "cancelled", "Cancelled"


class InvoiceLogType(models.TextChoices):
    """Kinds of audit log entries."""

    REQUEST = "request", "Outbound Request"
    INCOMING = "incoming", "Incoming Notification"


class Subscriber(BaseModel):
    """
    A subscriber account.

    Profile fields are backfilled from provider data but never overwritten
    once set (see LedgerService.update_subscriber).
    """

    email = models.EmailField(
        db_index=True,
        help_text="Subscriber email address",
    )
    name_f = models.CharField(max_length=64, blank=True, default="")
    name_l = models.CharField(max_length=64, blank=True, default="")
    street = models.CharField(max_length=255, blank=True, default="")
    street2 = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=128, blank=True, default="")
    state = models.CharField(max_length=64, blank=True, default="")
    country = models.CharField(
        max_length=2,
        blank=True,
        default="",
        help_text="ISO 3166-1 alpha-2 country code",
    )
    zip = models.CharField(max_length=32, blank=True, default="")
    tax_id = models.CharField(max_length=64, blank=True, default="")
    is_locked = models.BooleanField(
        default=False,
        help_text="Locked accounts lose access (e.g. after a chargeback)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscriber"
        verbose_name_plural = "Subscribers"

    def __str__(self) -> str:
        return f"Subscriber({self.pk}, {self.email})"

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.name_f, self.name_l) if part)


class Invoice(BaseModel):
    """
    A subscriber's billing record for one purchase or subscription.

    Totals are in major units of ``currency``. A recurring invoice has a
    ``second_period`` and bills ``second_total`` up to ``rebill_times``
    times after the first payment.
    """

    public_id = models.CharField(
        max_length=32,
        unique=True,
        help_text="Public invoice identifier shared with the payment provider",
    )
    subscriber = models.ForeignKey(
        Subscriber,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    currency = models.CharField(max_length=3, help_text="ISO 4217 currency code")
    status = FSMField(
        default=InvoiceStatus.PENDING,
        choices=InvoiceStatus.choices,
        db_index=True,
        protected=False,
        help_text="Current state of the invoice (managed by FSM)",
    )

    # ==========================================================================
    # Billing Terms
    # ==========================================================================

    first_total = models.DecimalField(max_digits=12, decimal_places=2)
    first_period = models.CharField(max_length=16)
    second_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    second_period = models.CharField(max_length=16, blank=True, default="")
    rebill_times = models.PositiveIntegerField(
        default=0,
        help_text=f"Number of rebills after the first payment ({RECURRING_REBILLS} = until cancelled)",
    )
    rebill_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date of the next expected rebill",
    )
    paysys_id = models.CharField(max_length=32, default=PADDLE_PAYSYS_ID)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"

    def __str__(self) -> str:
        return f"Invoice({self.pk}/{self.public_id}, {self.status})"

    # ==========================================================================
    # Derived values
    # ==========================================================================

    @property
    def is_recurring(self) -> bool:
        return bool(self.second_period) and self.rebill_times > 0

    @property
    def expected_payments_count(self) -> int:
        """
        Number of payments the invoice expects over its lifetime.

        A free first period is granted as an access period, not a payment.
        """
        count = self.rebill_times if self.is_recurring else 0
        if self.first_total > 0:
            count += 1
        return count

    @property
    def payments_count(self) -> int:
        return self.payments.count()

    @property
    def access_expire(self):
        """Latest access expiry date, or None without access records."""
        return self.access_periods.aggregate(latest=Max("expire_date"))["latest"]

    def period_for_payment(self, payment_number: int) -> Period:
        """Billing period covered by the n-th payment (1-based)."""
        if payment_number <= 1 or not self.second_period:
            return Period.parse(self.first_period)
        return Period.parse(self.second_period)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=InvoiceStatus.PENDING,
        target=InvoiceStatus.PAID,
    )
    def mark_paid(self):
        """One-time invoice paid. Transition: PENDING -> PAID"""

    @transition(
        field=status,
        source=[InvoiceStatus.PENDING, InvoiceStatus.RECURRING_FAILED],
        target=InvoiceStatus.RECURRING_ACTIVE,
    )
    def activate(self):
        """Recurring billing (re)started. Transition: PENDING/RECURRING_FAILED -> RECURRING_ACTIVE"""

    @transition(
        field=status,
        source=InvoiceStatus.RECURRING_ACTIVE,
        target=InvoiceStatus.RECURRING_FAILED,
    )
    def mark_failed(self):
        """Recurring charge failed or subscription paused. Transition: RECURRING_ACTIVE -> RECURRING_FAILED"""

    @transition(
        field=status,
        source=[
            InvoiceStatus.PENDING,
            InvoiceStatus.RECURRING_ACTIVE,
            InvoiceStatus.RECURRING_FAILED,
        ],
        target=InvoiceStatus.RECURRING_FINISHED,
    )
    def finish(self):
        """
        All expected payments received.

        Transition: PENDING/RECURRING_ACTIVE/RECURRING_FAILED -> RECURRING_FINISHED
        """
        self.rebill_date = None

    @transition(
        field=status,
        source=[
            InvoiceStatus.PENDING,
            InvoiceStatus.RECURRING_ACTIVE,
            InvoiceStatus.RECURRING_FAILED,
        ],
        target=InvoiceStatus.CANCELLED,
    )
    def cancel(self):
        """
        Stop recurring billing.

        Transition: PENDING/RECURRING_ACTIVE/RECURRING_FAILED -> CANCELLED
        """
        self.rebill_date = None


class InvoiceItem(BaseModel):
    """One product line of an invoice."""

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="items",
    )
    item_id = models.CharField(
        max_length=64,
        help_text="Product identifier in the catalogue",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    terms = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Human-readable billing terms, e.g. '$10.00 for 1 month'",
    )
    image_url = models.URLField(blank=True, default="")
    qty = models.PositiveIntegerField(default=1)
    currency = models.CharField(max_length=3)
    first_total = models.DecimalField(max_digits=12, decimal_places=2)
    first_period = models.CharField(max_length=16)
    second_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    second_period = models.CharField(max_length=16, blank=True, default="")
    rebill_times = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["pk"]

    def __str__(self) -> str:
        return f"InvoiceItem({self.pk}, {self.title})"


class InvoicePayment(BaseModel):
    """A captured payment. ``receipt_id`` is the provider transaction id."""

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="payments",
    )
    subscriber = models.ForeignKey(
        Subscriber,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    receipt_id = models.CharField(max_length=64, db_index=True)
    transaction_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Provider notification/event identifier that created the payment",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3)
    paysys_id = models.CharField(max_length=32, default=PADDLE_PAYSYS_ID)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["invoice", "receipt_id"],
                name="unique_payment_receipt_per_invoice",
            ),
        ]

    def __str__(self) -> str:
        return f"InvoicePayment({self.receipt_id}, {self.amount} {self.currency})"


class InvoiceRefund(BaseModel):
    """
    A refund against a payment.

    ``receipt_id`` is the provider adjustment id; ``transaction_id`` is the
    refunded transaction.
    """

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="refunds",
    )
    receipt_id = models.CharField(max_length=64)
    transaction_id = models.CharField(max_length=64, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3)
    paysys_id = models.CharField(max_length=32, default=PADDLE_PAYSYS_ID)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["invoice", "receipt_id"],
                name="unique_refund_receipt_per_invoice",
            ),
        ]

    def __str__(self) -> str:
        return f"InvoiceRefund({self.receipt_id}, {self.amount} {self.currency})"


class InvoiceChargeback(BaseModel):
    """A disputed payment reported by the provider."""

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="chargebacks",
    )
    receipt_id = models.CharField(max_length=64)
    transaction_id = models.CharField(max_length=64, db_index=True)
    paysys_id = models.CharField(max_length=32, default=PADDLE_PAYSYS_ID)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["invoice", "receipt_id"],
                name="unique_chargeback_receipt_per_invoice",
            ),
        ]


class AccessPeriod(BaseModel):
    """Dates a subscriber has access for, granted by one transaction."""

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="access_periods",
    )
    subscriber = models.ForeignKey(
        Subscriber,
        on_delete=models.CASCADE,
        related_name="access_periods",
    )
    transaction_id = models.CharField(max_length=64)
    begin_date = models.DateField()
    expire_date = models.DateField()

    class Meta:
        ordering = ["begin_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["invoice", "transaction_id"],
                name="unique_access_transaction_per_invoice",
            ),
        ]

    def __str__(self) -> str:
        return f"AccessPeriod({self.begin_date} - {self.expire_date})"


class SubscriberNote(BaseModel):
    """Operator-facing note attached to a subscriber."""

    subscriber = models.ForeignKey(
        Subscriber,
        on_delete=models.CASCADE,
        related_name="notes",
    )
    content = models.TextField()

    class Meta:
        ordering = ["-created_at"]


class InvoiceLog(BaseModel):
    """
    Audit log entry.

    ``entries`` is a list of strings (request dump, response dump, notes)
    with secrets already masked.
    """

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="logs",
    )
    title = models.CharField(max_length=128)
    paysys_id = models.CharField(max_length=32, default=PADDLE_PAYSYS_ID)
    remote_addr = models.CharField(max_length=45, blank=True, default="")
    log_type = models.CharField(
        max_length=16,
        choices=InvoiceLogType.choices,
        default=InvoiceLogType.REQUEST,
    )
    entries = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["paysys_id", "created_at"],
                name="invoicelog_paysys_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"InvoiceLog({self.pk}, {self.title})"
