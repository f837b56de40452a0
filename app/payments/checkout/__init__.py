"""
Paddle.js checkout for ledger invoices.

Usage:
    from payments.checkout import CheckoutService, build_transaction_params
"""

from payments.checkout.builder import build_items, build_transaction_params, rebill_text
from payments.checkout.services import CheckoutService, statement_descriptor

__all__ = [
    "CheckoutService",
    "build_items",
    "build_transaction_params",
    "rebill_text",
    "statement_descriptor",
]
