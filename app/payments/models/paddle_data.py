"""
Paddle correlation data stored beside ledger records.

The ledger owns invoices and subscribers; these one-to-one tables hold
what only the Paddle integration needs to know about them.

Usage:
    from payments.models import PaddleInvoiceData

    data = PaddleInvoiceData.for_invoice(invoice)
    data.subscription_id       # "sub_01h..."
    data.billed_line_items     # ["txnitm_01h...", ...]
    data.xrate, data.xcurrency # Decimal("0.9200000000"), "EUR"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models

from core.models import BaseModel

if TYPE_CHECKING:
    from ledger.models import Invoice, Subscriber


class PaddleInvoiceData(BaseModel):
    """
    Paddle-side facts about one invoice.

    Fields:
        invoice: The ledger invoice
        subscription_id: Paddle subscription (sub_xxx), set by the first
            transaction.completed that carries one
        billed_line_items: Paddle transaction item ids (txnitm_xxx) with a
            positive total, used to target refunds
        xrate: Localized amount / invoice amount, fixed at the first
            payment collected in another currency. Never recomputed.
        xcurrency: Currency the rate converts into
    """

    invoice = models.OneToOneField(
        "ledger.Invoice",
        on_delete=models.CASCADE,
        related_name="paddle_data",
    )
    subscription_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Paddle subscription ID (sub_xxx)",
    )
    billed_line_items = models.JSONField(
        default=list,
        blank=True,
        help_text="Paddle transaction item IDs billed with a positive total",
    )
    xrate = models.DecimalField(
        max_digits=20,
        decimal_places=10,
        null=True,
        blank=True,
        help_text="Exchange rate snapshot: localized amount / invoice amount",
    )
    xcurrency = models.CharField(
        max_length=3,
        blank=True,
        default="",
        help_text="Currency the exchange rate converts into",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Paddle Invoice Data"
        verbose_name_plural = "Paddle Invoice Data"

    def __str__(self) -> str:
        return f"PaddleInvoiceData({self.invoice_id}, {self.subscription_id or '-'})"

    @classmethod
    def for_invoice(cls, invoice: Invoice) -> PaddleInvoiceData:
        data, _ = cls.objects.get_or_create(invoice=invoice)
        return data


class PaddleCustomerData(BaseModel):
    """
    Paddle entity ids for one subscriber.

    The address id is only meaningful with a customer id, and the business
    id only with an address id; the checkout config follows that nesting.
    """

    subscriber = models.OneToOneField(
        "ledger.Subscriber",
        on_delete=models.CASCADE,
        related_name="paddle_customer",
    )
    customer_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Paddle customer ID (ctm_xxx)",
    )
    address_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Paddle address ID (add_xxx)",
    )
    business_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Paddle business ID (biz_xxx)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Paddle Customer Data"
        verbose_name_plural = "Paddle Customer Data"

    def __str__(self) -> str:
        return f"PaddleCustomerData({self.subscriber_id}, {self.customer_id or '-'})"

    @classmethod
    def for_subscriber(cls, subscriber: Subscriber) -> PaddleCustomerData:
        data, _ = cls.objects.get_or_create(subscriber=subscriber)
        return data

    def update_ids(self, **ids: str | None) -> list[str]:
        """
        Store non-empty ids; empty values never clear a stored id.

        Returns the names of the fields that changed.
        """
        changed = []
        for name in ("customer_id", "address_id", "business_id"):
            value = ids.get(name)
            if value and getattr(self, name) != value:
                setattr(self, name, value)
                changed.append(name)
        if changed:
            self.save(update_fields=[*changed, "updated_at"])
        return changed
