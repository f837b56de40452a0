"""
DRF serializers for payments app.

This module provides serializers for:
- Checkout requests
- Refund requests
- Invoice state in operator responses

Related files:
    - views.py: Operator API views
    - checkout/services.py: CheckoutService

Usage:
    serializer = RefundRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    amount = serializer.validated_data["amount"]
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.webhooks.resolver import CUSTOM_DATA_INVOICE_KEY


class CheckoutRequestSerializer(serializers.Serializer):
    """
    Checkout request.

    Fields:
        custom_data: Extra key/value pairs passed through to Paddle
    """

    custom_data = serializers.DictField(required=False, default=dict)

    def validate_custom_data(self, value: dict) -> dict:
        if CUSTOM_DATA_INVOICE_KEY in value:
            raise serializers.ValidationError(f"{CUSTOM_DATA_INVOICE_KEY} is reserved.")
        return value


class RefundRequestSerializer(serializers.Serializer):
    """
    Refund request.

    Fields:
        amount: Amount to refund in the invoice currency; defaults to the
            whole payment
    """

    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
    )


class InvoiceSerializer(serializers.Serializer):
    """Invoice state returned after operator actions."""

    public_id = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    currency = serializers.CharField(read_only=True)
    rebill_date = serializers.DateField(read_only=True)
    access_expire = serializers.DateField(read_only=True)


class AdjustmentSerializer(serializers.Serializer):
    """Refund adjustment Paddle created, pending approval."""

    id = serializers.CharField(read_only=True)
    action = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    transaction_id = serializers.CharField(read_only=True)
