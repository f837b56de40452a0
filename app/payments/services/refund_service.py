"""
Refund request service.

Paddle refunds are not instantaneous: they are requested through the API
and approved (or rejected) by Paddle. This service only files the request.
The refund record is created by the adjustment.created webhook and removed
again if Paddle rejects it.

Usage:
    from payments.services import RefundRequestService

    result = RefundRequestService.request_refund(payment, Decimal("5.00"))
    if result:
        adjustment_id = result.data["id"]
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from core.services import BaseService, ServiceResult
from payments.adapters import PaddleAdapter
from payments.currency import major_to_minor, to_transaction_currency
from payments.exceptions import PaddleAPIError
from payments.models import PaddleInvoiceData

if TYPE_CHECKING:
    from ledger.models import InvoicePayment


logger = logging.getLogger(__name__)


class RefundType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class RefundRequestService(BaseService):
    """Files refund adjustments against Paddle transactions."""

    # Paddle adapter - can be injected for testing
    _paddle_adapter: type | None = None

    @classmethod
    def get_paddle_adapter(cls) -> type:
        return cls._paddle_adapter or PaddleAdapter

    @classmethod
    def set_paddle_adapter(cls, adapter: type | None) -> None:
        cls._paddle_adapter = adapter

    @classmethod
    def request_refund(cls, payment: InvoicePayment, amount: Decimal) -> ServiceResult[dict[str, Any]]:
        """
        Ask Paddle to refund ``amount`` of ``payment``.

        Refunding the whole payment amount is a full refund of every billed
        line item. Anything less is a partial refund placed on the first
        billed item, converted into the currency Paddle charged in.

        Args:
            payment: The recorded payment (its receipt id is the Paddle transaction)
            amount: Amount to refund, in the invoice currency

        Returns:
            ServiceResult with the created adjustment
        """
        log = cls.get_logger()
        invoice = payment.invoice
        amount = Decimal(amount)
        log_context = {"invoice_id": invoice.pk, "payment_id": payment.pk, "receipt_id": payment.receipt_id}

        if amount <= 0 or amount > payment.amount:
            return ServiceResult.failure(
                f"Refund amount must be between 0 and {payment.amount}",
                error_code="INVALID_REFUND_AMOUNT",
                errors={"amount": [f"Must be greater than 0 and at most {payment.amount}."]},
            )

        data = PaddleInvoiceData.objects.filter(invoice=invoice).first()
        billed_items = list(data.billed_line_items) if data is not None else []
        if not billed_items:
            return ServiceResult.failure(
                "No billed Paddle line items recorded for this invoice",
                error_code="NO_BILLED_ITEMS",
            )

        refund_type = RefundType.FULL if amount == payment.amount else RefundType.PARTIAL
        items = build_refund_items(billed_items, refund_type)
        if refund_type == RefundType.PARTIAL:
            charged, currency = to_transaction_currency(invoice, amount)
            items[0]["amount"] = str(major_to_minor(charged, currency))

        log.info(f"Requesting {refund_type.value} refund of {amount} {invoice.currency}", extra=log_context)
        try:
            adjustment = cls.get_paddle_adapter().create_adjustment(
                payment.receipt_id,
                items=items,
                reason=f"Refund requested by user ({invoice.subscriber.email})",
                action="refund",
                invoice=invoice,
            )
        except PaddleAPIError as e:
            return cls.handle_exception(e, "Refund request", log_level=logging.WARNING)

        log.info(f"Refund adjustment {adjustment.get('id')} requested", extra=log_context)
        return ServiceResult.success(adjustment)


def build_refund_items(billed_items: list[str], refund_type: RefundType) -> list[dict[str, Any]]:
    return [{"type": refund_type.value, "item_id": item_id} for item_id in billed_items]
