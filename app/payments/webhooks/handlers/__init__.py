"""
Reconciliation handlers, one module per Paddle entity.

Importing this package registers every handler with the classifier;
PaymentsConfig.ready() does so at startup.
"""

from payments.webhooks.handlers.adjustment import AdjustmentHandler
from payments.webhooks.handlers.subscription import SubscriptionHandler
from payments.webhooks.handlers.transaction import TransactionHandler

__all__ = [
    "AdjustmentHandler",
    "SubscriptionHandler",
    "TransactionHandler",
]
