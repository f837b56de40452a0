"""
DRF views for payments app.

This module provides operator API views for:
- Checkout (draft a Paddle transaction for an invoice)
- Subscription cancellation
- Refund requests
- Links to Paddle-hosted pages (invoice PDF, payment-method update)

Related files:
    - services/: SubscriptionCancellationService, RefundRequestService
    - checkout/: CheckoutService
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/invoices/{public_id}/checkout/ - Checkout config
    POST /api/v1/payments/invoices/{public_id}/cancel/ - Cancel subscription
    GET /api/v1/payments/invoices/{public_id}/update-payment/ - Redirect to Paddle
    POST /api/v1/payments/payments/{id}/refund/ - Request a refund
    GET /api/v1/payments/payments/{id}/invoice-pdf/ - Redirect to Paddle invoice PDF

Security:
    - Admin-only (DEFAULT_PERMISSION_CLASSES)
    - The Paddle webhook lives in webhooks/views.py and uses its signature instead
"""

from __future__ import annotations

import logging

from django.http import HttpResponseRedirect
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.exceptions import InvoiceNotFound
from ledger.models import PADDLE_PAYSYS_ID, InvoicePayment
from ledger.services import LedgerService
from payments.adapters import PaddleAdapter
from payments.checkout import CheckoutService
from payments.exceptions import PaddleAPIError
from payments.models import PaddleInvoiceData
from payments.services import RefundRequestService, SubscriptionCancellationService

from .serializers import (
    AdjustmentSerializer,
    CheckoutRequestSerializer,
    InvoiceSerializer,
    RefundRequestSerializer,
)

logger = logging.getLogger(__name__)

# Failures caused by the request rather than by Paddle
CLIENT_ERROR_CODES = frozenset(
    {
        "INVOICE_EMPTY",
        "SUBSCRIPTION_ID_MISSING",
        "INVALID_REFUND_AMOUNT",
        "NO_BILLED_ITEMS",
    }
)


def failure_response(result) -> Response:
    if result.error_code in CLIENT_ERROR_CODES:
        return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)
    return Response(result.to_response(), status=status.HTTP_502_BAD_GATEWAY)


class InvoiceMixin:
    """Looks up the invoice named in the URL."""

    def get_invoice(self, public_id: str):
        invoice = LedgerService.find_invoice_by_public_id(public_id)
        if invoice is None or invoice.paysys_id != PADDLE_PAYSYS_ID:
            raise InvoiceNotFound(f"Invoice {public_id} not found", details={"public_id": public_id})
        return invoice

    def handle_exception(self, exc):
        if isinstance(exc, InvoiceNotFound):
            return Response(exc.to_dict(), status=status.HTTP_404_NOT_FOUND)
        return super().handle_exception(exc)


class CheckoutView(InvoiceMixin, APIView):
    """
    Draft a Paddle transaction for an invoice.

    POST /api/v1/payments/invoices/{public_id}/checkout/

    Request body:
        {"custom_data": {"utm_medium": "email"}}

    Returns:
        {"checkout": {...Paddle.Checkout.open() config...},
         "environment": "sandbox" | "production",
         "statement_descriptor": "PADDLE.NET*..."}
    """

    def post(self, request, public_id):
        invoice = self.get_invoice(public_id)
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CheckoutService.create_checkout(invoice, custom_data=serializer.validated_data["custom_data"])
        if not result:
            return failure_response(result)
        return Response(result.data, status=status.HTTP_201_CREATED)


class CancelSubscriptionView(InvoiceMixin, APIView):
    """
    Cancel the Paddle subscription of an invoice, effective immediately.

    POST /api/v1/payments/invoices/{public_id}/cancel/
    """

    def post(self, request, public_id):
        invoice = self.get_invoice(public_id)
        result = SubscriptionCancellationService.cancel(invoice)
        if not result:
            return failure_response(result)
        return Response(InvoiceSerializer(result.data).data)


class UpdatePaymentMethodView(InvoiceMixin, APIView):
    """
    Redirect to Paddle's checkout for replacing a subscription's payment method.

    GET /api/v1/payments/invoices/{public_id}/update-payment/
    """

    def get(self, request, public_id):
        invoice = self.get_invoice(public_id)
        data = PaddleInvoiceData.objects.filter(invoice=invoice).first()
        if data is None or not data.subscription_id:
            return Response(
                {"error": "Invoice has no Paddle subscription", "error_code": "SUBSCRIPTION_ID_MISSING"},
                status=status.HTTP_404_NOT_FOUND,
            )

        try:
            url = PaddleAdapter.get_update_payment_method_url(data.subscription_id, invoice=invoice)
        except PaddleAPIError as e:
            return Response(e.to_dict(), status=status.HTTP_502_BAD_GATEWAY)
        return HttpResponseRedirect(url)


class RefundView(APIView):
    """
    Request a refund of a recorded Paddle payment.

    POST /api/v1/payments/payments/{id}/refund/

    Request body:
        {"amount": "5.00"}   (omit for a full refund)

    The refund appears in the ledger when Paddle's adjustment webhook
    arrives.
    """

    def post(self, request, pk):
        payment = get_object_or_404(
            InvoicePayment.objects.select_related("invoice__subscriber"),
            pk=pk,
            paysys_id=PADDLE_PAYSYS_ID,
        )
        serializer = RefundRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        amount = serializer.validated_data.get("amount") or payment.amount

        result = RefundRequestService.request_refund(payment, amount)
        if not result:
            return failure_response(result)
        return Response(AdjustmentSerializer(result.data).data, status=status.HTTP_202_ACCEPTED)


class InvoicePdfView(APIView):
    """
    Redirect to the PDF invoice Paddle issued for a payment.

    GET /api/v1/payments/payments/{id}/invoice-pdf/
    """

    def get(self, request, pk):
        payment = get_object_or_404(
            InvoicePayment.objects.select_related("invoice"),
            pk=pk,
            paysys_id=PADDLE_PAYSYS_ID,
        )
        try:
            url = PaddleAdapter.get_invoice_pdf_url(payment.receipt_id, invoice=payment.invoice)
        except PaddleAPIError as e:
            return Response(e.to_dict(), status=status.HTTP_502_BAD_GATEWAY)
        return HttpResponseRedirect(url)
