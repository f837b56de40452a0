"""
Subscriber ledger.

Owns the billing records the Paddle integration reconciles against:
subscribers, invoices and their items, payment / refund / chargeback
records, access periods, subscriber notes and the invoice audit log.

All writes from other apps go through ``ledger.services.LedgerService``.

Usage:
    from ledger.services import LedgerService

    invoice = LedgerService.find_invoice_by_public_id("INV-1001")
    LedgerService.add_payment(invoice, receipt_id="txn_01h...", amount=Decimal("10.00"))
"""
