"""
Ledger app configuration.

This app provides the subscriber ledger: invoices, subscribers and the
payment, refund, chargeback and access records attached to them.
"""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    """Configuration for the ledger application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Ledger"
