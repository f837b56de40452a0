"""
Subscription cancellation service.

Paddle subscriptions run until cancelled, so a subscription is cancelled
both on operator request and automatically once an invoice has received
every payment it expects.

Usage:
    from payments.services import SubscriptionCancellationService

    result = SubscriptionCancellationService.cancel(invoice)
    if not result:
        logger.warning(f"Cancel failed: {result.error}")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult
from ledger.services import LedgerService
from payments.adapters import ALREADY_CANCELLED_CODES, PaddleAdapter
from payments.exceptions import PaddleAPIError
from payments.models import PaddleInvoiceData

if TYPE_CHECKING:
    from ledger.models import Invoice


logger = logging.getLogger(__name__)


class SubscriptionCancellationService(BaseService):
    """
    Cancels the Paddle subscription behind an invoice.

    Cancellation is immediate. A subscription Paddle already cancelled
    counts as success, so repeating a cancel is safe.
    """

    # Paddle adapter - can be injected for testing
    _paddle_adapter: type | None = None

    @classmethod
    def get_paddle_adapter(cls) -> type:
        return cls._paddle_adapter or PaddleAdapter

    @classmethod
    def set_paddle_adapter(cls, adapter: type | None) -> None:
        cls._paddle_adapter = adapter

    @classmethod
    def cancel(cls, invoice: Invoice, subscription_id: str | None = None) -> ServiceResult[Invoice]:
        """
        Cancel the subscription and mark the invoice cancelled.

        Args:
            invoice: Invoice whose subscription to cancel
            subscription_id: Paddle subscription id; looked up from the
                invoice's Paddle data when omitted

        Returns:
            ServiceResult with the invoice, or the Paddle error detail
        """
        log = cls.get_logger()
        subscription_id = subscription_id or cls._subscription_id(invoice)
        if not subscription_id:
            return ServiceResult.failure(
                "Can not find subscription id",
                error_code="SUBSCRIPTION_ID_MISSING",
            )

        log_context = {"invoice_id": invoice.pk, "subscription_id": subscription_id}

        try:
            cls.get_paddle_adapter().cancel_subscription(
                subscription_id,
                effective_from="immediately",
                invoice=invoice,
            )
        except PaddleAPIError as e:
            if e.code not in ALREADY_CANCELLED_CODES:
                log.warning(f"Paddle refused to cancel {subscription_id}: {e.detail}", extra=log_context)
                return ServiceResult.failure(e.detail, error_code=e.code or e.error_code)
            log.info(f"Subscription {subscription_id} was already cancelled at Paddle", extra=log_context)

        LedgerService.set_cancelled(invoice)
        log.info(f"Subscription {subscription_id} cancelled", extra=log_context)
        return ServiceResult.success(invoice)

    @staticmethod
    def _subscription_id(invoice: Invoice) -> str:
        data = PaddleInvoiceData.objects.filter(invoice=invoice).only("subscription_id").first()
        return data.subscription_id if data is not None else ""
