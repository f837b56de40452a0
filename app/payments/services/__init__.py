"""
Payment services for operations initiated from this side.

This module provides:
- SubscriptionCancellationService: Cancels Paddle subscriptions
- RefundRequestService: Files refund adjustments with Paddle

Usage:
    from payments.services import SubscriptionCancellationService

    result = SubscriptionCancellationService.cancel(invoice)

    from payments.services import RefundRequestService

    result = RefundRequestService.request_refund(payment, Decimal("5.00"))
"""

from payments.services.cancellation_service import SubscriptionCancellationService
from payments.services.refund_service import (
    RefundRequestService,
    RefundType,
    build_refund_items,
)

__all__ = [
    "RefundRequestService",
    "RefundType",
    "SubscriptionCancellationService",
    "build_refund_items",
]
