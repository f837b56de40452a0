"""
Webhook handling for Paddle Billing notifications.

Notifications are verified, decoded, classified and reconciled against
the ledger synchronously inside the request.

Usage:
    # In urls.py
    from payments.webhooks.views import paddle_webhook

    urlpatterns = [
        path("webhooks/paddle/", paddle_webhook, name="paddle_webhook"),
    ]
"""

from payments.webhooks.classifier import classify, dispatch_webhook, register_handler
from payments.webhooks.views import paddle_webhook

__all__ = [
    "classify",
    "dispatch_webhook",
    "paddle_webhook",
    "register_handler",
]
