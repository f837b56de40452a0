"""
URL configuration for the Paddle Billing backend.

URL Structure:
    /health/                                   - Health check endpoint (load balancers, Docker)
    /api/v1/payments/                          - Paddle Billing endpoints
        webhooks/paddle/                       - Paddle notification endpoint (POST)
        invoices/{public_id}/checkout/         - Draft a transaction and return checkout config
        invoices/{public_id}/cancel/           - Cancel the Paddle subscription of an invoice
        invoices/{public_id}/update-payment/   - Redirect to Paddle's payment-method update checkout
        payments/{id}/refund/                  - Request a refund for a recorded payment
        payments/{id}/invoice-pdf/             - Redirect to the Paddle invoice PDF

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.urls import include, path

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Payments
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]
