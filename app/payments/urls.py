"""
URL configuration for the payments app.

Routes:
    - POST /webhooks/paddle/ - Paddle notification endpoint
    - POST /invoices/<public_id>/checkout/ - Draft transaction, return checkout config
    - POST /invoices/<public_id>/cancel/ - Cancel the invoice's subscription
    - GET /invoices/<public_id>/update-payment/ - Payment-method update redirect
    - POST /payments/<id>/refund/ - Request a refund
    - GET /payments/<id>/invoice-pdf/ - Invoice PDF redirect

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    CancelSubscriptionView,
    CheckoutView,
    InvoicePdfView,
    RefundView,
    UpdatePaymentMethodView,
)
from payments.webhooks.views import paddle_webhook

app_name = "payments"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/paddle/", paddle_webhook, name="paddle_webhook"),
    # Invoices
    path("invoices/<str:public_id>/checkout/", CheckoutView.as_view(), name="invoice_checkout"),
    path("invoices/<str:public_id>/cancel/", CancelSubscriptionView.as_view(), name="invoice_cancel"),
    path(
        "invoices/<str:public_id>/update-payment/",
        UpdatePaymentMethodView.as_view(),
        name="invoice_update_payment",
    ),
    # Payments
    path("payments/<int:pk>/refund/", RefundView.as_view(), name="payment_refund"),
    path("payments/<int:pk>/invoice-pdf/", InvoicePdfView.as_view(), name="payment_invoice_pdf"),
]
