"""
Maps a Paddle notification to exactly one ledger invoice.

Strategies, in strict priority order, stopping at the first hit:

1. custom_data["invoice_public_id"]: stamped on the transaction by the
   checkout builder. Authoritative and cheapest.
2. Subscription id: invoices whose Paddle data carries the subscription.
   Subscription events often carry no custom data.
3. Receipt id: the Paddle transaction id against payments and access
   periods already recorded for Paddle.

An invoice is never created from a notification. When custom data names
an invoice that does not exist the event cannot be reconciled by
retrying (poison); otherwise the invoice may simply not be committed yet.

Usage:
    from payments.webhooks.resolver import InvoiceResolver

    resolution = InvoiceResolver.resolve(
        custom_data=envelope.get("custom_data", default={}),
        subscription_id=envelope.get("subscription_id"),
        receipt_id=envelope.object_id,
    )
    if resolution.found:
        invoice = resolution.invoice
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ledger.models import PADDLE_PAYSYS_ID
from ledger.services import LedgerService
from payments.models import PaddleInvoiceData

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ledger.models import Invoice


logger = logging.getLogger(__name__)

# Key the checkout builder stores the invoice public id under
CUSTOM_DATA_INVOICE_KEY = "invoice_public_id"


class ResolutionStrategy(str, Enum):
    CUSTOM_DATA = "custom_data"
    SUBSCRIPTION_ID = "subscription_id"
    RECEIPT_ID = "receipt_id"


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of invoice resolution.

    Attributes:
        invoice: The resolved invoice, None if not found
        strategy: Which strategy found it
        explicit_id_missing: Custom data named an invoice that does not exist
    """

    invoice: Invoice | None
    strategy: ResolutionStrategy | None = None
    explicit_id_missing: bool = False

    @property
    def found(self) -> bool:
        return self.invoice is not None

    @classmethod
    def not_found(cls, explicit_id_missing: bool = False) -> Resolution:
        return cls(invoice=None, explicit_id_missing=explicit_id_missing)


class InvoiceResolver:
    """
    Resolves notifications to invoices.

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def resolve(
        custom_data: Mapping[str, Any] | None,
        subscription_id: str | None,
        receipt_id: str | None,
    ) -> Resolution:
        public_id = (custom_data or {}).get(CUSTOM_DATA_INVOICE_KEY)
        if public_id:
            invoice = LedgerService.find_invoice_by_public_id(str(public_id))
            if invoice is None:
                logger.error(
                    f"Notification names invoice {public_id} which does not exist",
                    extra={"public_id": public_id, "receipt_id": receipt_id},
                )
                return Resolution.not_found(explicit_id_missing=True)
            return Resolution(invoice, ResolutionStrategy.CUSTOM_DATA)

        if subscription_id:
            invoice = InvoiceResolver.find_by_subscription_id(subscription_id)
            if invoice is not None:
                return Resolution(invoice, ResolutionStrategy.SUBSCRIPTION_ID)

        if receipt_id:
            invoice = LedgerService.find_invoice_by_receipt_id(receipt_id, paysys_id=PADDLE_PAYSYS_ID)
            if invoice is not None:
                return Resolution(invoice, ResolutionStrategy.RECEIPT_ID)

        logger.warning(
            "No invoice found for notification",
            extra={"subscription_id": subscription_id, "receipt_id": receipt_id},
        )
        return Resolution.not_found()

    @staticmethod
    def find_by_subscription_id(subscription_id: str) -> Invoice | None:
        data = (
            PaddleInvoiceData.objects.select_related("invoice__subscriber")
            .filter(subscription_id=subscription_id, invoice__paysys_id=PADDLE_PAYSYS_ID)
            .order_by("-created_at")
            .first()
        )
        return data.invoice if data is not None else None
