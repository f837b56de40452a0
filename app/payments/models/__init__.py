"""
Payment domain models.

Typed side tables holding Paddle correlation data for ledger records:
- PaddleInvoiceData: subscription id, billed line items and the
  exchange-rate snapshot for one invoice
- PaddleCustomerData: Paddle customer / address / business ids for one
  subscriber
"""

from payments.models.paddle_data import PaddleCustomerData, PaddleInvoiceData

__all__ = [
    "PaddleCustomerData",
    "PaddleInvoiceData",
]
