"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    ├── InvoiceNotFound - Invoice lookup failures
    └── RecordNotUnique - A payment / refund / chargeback / access record
                          for the same receipt already exists

Usage:
    from ledger.exceptions import RecordNotUnique

    try:
        LedgerService.add_refund(invoice, receipt_id=adj_id, ...)
    except RecordNotUnique:
        pass  # already recorded by an earlier delivery
"""

from __future__ import annotations

from core.exceptions import ConflictError, NotFoundError


class LedgerError(Exception):
    """
    Mixin base for ledger exceptions.

    Lets callers catch every ledger failure with one ``except LedgerError``
    while each concrete error keeps its core category (not found, conflict).
    """


class InvoiceNotFound(LedgerError, NotFoundError):
    """Raised when an invoice lookup that must succeed finds nothing."""

    default_error_code: str = "INVOICE_NOT_FOUND"


class RecordNotUnique(LedgerError, ConflictError):
    """
    Raised when a ledger insert hits a uniqueness constraint.

    For provider-driven inserts this means the record was already applied
    by an earlier delivery of the same notification.
    """

    default_error_code: str = "RECORD_NOT_UNIQUE"
