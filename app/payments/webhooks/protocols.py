"""
Webhook handler protocol and outcomes.

Each reconciliation handler is constructed with the envelope it handles
and satisfies WebhookHandler. dispatch_webhook() drives any handler
through the same steps, so the handlers only implement their own
decisions:

    validate_status()  -> is this event something to act on?
    resolve_invoice()  -> which ledger invoice does it concern?
    amount(invoice)    -> invoice-currency amount, or None for the default
    process_validated(invoice) -> apply the transition
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from decimal import Decimal

    from ledger.models import Invoice
    from payments.webhooks.envelope import EventEnvelope
    from payments.webhooks.resolver import Resolution


class OutcomeStatus(str, Enum):
    """What happened to a notification."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNRESOLVED = "unresolved"
    POISON = "poison"


@dataclass(frozen=True)
class HandlerOutcome:
    """
    Result of handling one notification.

    Only UNRESOLVED asks Paddle to redeliver (404): the invoice may exist
    once a racing notification or checkout commits. Everything else is
    acknowledged.
    """

    status: OutcomeStatus
    message: str = ""
    invoice: Invoice | None = None

    @classmethod
    def processed(cls, message: str = "Processed", invoice: Invoice | None = None) -> HandlerOutcome:
        return cls(OutcomeStatus.PROCESSED, message, invoice)

    @classmethod
    def duplicate(cls, message: str = "Already processed", invoice: Invoice | None = None) -> HandlerOutcome:
        return cls(OutcomeStatus.DUPLICATE, message, invoice)

    @classmethod
    def ignored(cls, message: str = "Ignored") -> HandlerOutcome:
        return cls(OutcomeStatus.IGNORED, message)

    @classmethod
    def unresolved(cls, message: str = "Invoice not found") -> HandlerOutcome:
        return cls(OutcomeStatus.UNRESOLVED, message)

    @classmethod
    def poison(cls, message: str) -> HandlerOutcome:
        return cls(OutcomeStatus.POISON, message)

    @property
    def http_status(self) -> int:
        return 404 if self.status == OutcomeStatus.UNRESOLVED else 200


class WebhookHandler(Protocol):
    """Interface every reconciliation handler implements."""

    envelope: EventEnvelope

    def validate_status(self) -> bool:
        """False when the event is of a known type but not one to act on."""
        ...

    def resolve_invoice(self) -> Resolution:
        ...

    def amount(self, invoice: Invoice) -> Decimal | None:
        ...

    def process_validated(self, invoice: Invoice) -> HandlerOutcome:
        """Apply the event to ``invoice``. Runs inside a transaction."""
        ...
