"""
Audit trail for Paddle traffic.

Every outbound API request/response pair and every handled inbound
notification is written to the ledger's InvoiceLog, with the API key and
webhook secret masked. PADDLE_DISABLE_REQUEST_LOG turns the trail off.

Usage:
    from payments.audit import AuditLog

    audit = AuditLog("CANCEL", invoice=invoice)
    audit.add({"method": "POST", "url": url, "body": payload})
    audit.add(f"Unable to cancel subscription_id: {subscription_id}")
    audit.save()
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.helpers import mask_secrets
from ledger.models import InvoiceLogType
from ledger.services import LedgerService

if TYPE_CHECKING:
    from ledger.models import Invoice, InvoiceLog


logger = logging.getLogger(__name__)


def secret_placeholders() -> dict[str, str]:
    """Configured secrets and the placeholder each is logged as."""
    return {
        settings.PADDLE_API_KEY: "***api_key***",
        settings.PADDLE_WEBHOOK_SECRET: "***secret***",
    }


class AuditLog:
    """
    Collects entries for one InvoiceLog row.

    Entries are masked as they are added, so nothing unmasked is kept in
    memory longer than the call that produced it.
    """

    def __init__(
        self,
        title: str,
        invoice: Invoice | None = None,
        remote_addr: str = "",
        log_type: str = InvoiceLogType.REQUEST,
    ):
        self.title = title
        self.invoice = invoice
        self.remote_addr = remote_addr
        self.log_type = log_type
        self.entries: list[str] = []

    @classmethod
    def incoming(cls, title: str, remote_addr: str = "") -> AuditLog:
        return cls(title, remote_addr=remote_addr, log_type=InvoiceLogType.INCOMING)

    @property
    def enabled(self) -> bool:
        return not settings.PADDLE_DISABLE_REQUEST_LOG

    def add(self, entry: Any) -> None:
        if not isinstance(entry, str):
            entry = json.dumps(entry, default=str, sort_keys=True)
        self.entries.append(mask_secrets(entry, secret_placeholders()))

    def save(self) -> InvoiceLog | None:
        """Write the collected entries. Returns None when logging is off or empty."""
        if not self.enabled or not self.entries:
            return None
        return LedgerService.log(
            self.title,
            self.entries,
            invoice=self.invoice,
            remote_addr=self.remote_addr,
            log_type=self.log_type,
        )
