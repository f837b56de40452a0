"""
Event classification and dispatch.

Handlers register the event types they reconcile with @register_handler.
classify() picks the handler for an envelope, or None for event types
this integration does not act on; those are acknowledged without touching
the database, so new Paddle event types are safe to receive.

Usage:
    from payments.webhooks.classifier import classify, dispatch_webhook, register_handler

    @register_handler(EventType.SUBSCRIPTION_UPDATED, EventType.SUBSCRIPTION_CANCELLED)
    class SubscriptionHandler:
        def __init__(self, envelope, audit=None): ...

    handler = classify(envelope, audit)
    if handler is not None:
        outcome = dispatch_webhook(handler)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from django.db import transaction

from payments.webhooks.protocols import HandlerOutcome

if TYPE_CHECKING:
    from payments.audit import AuditLog
    from payments.webhooks.envelope import EventEnvelope
    from payments.webhooks.protocols import WebhookHandler


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler classes
WEBHOOK_HANDLERS: dict[str, Callable[..., WebhookHandler]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Class decorator registering a handler for one or more event types.

    Args:
        event_types: Paddle event types (e.g. "adjustment.created")
    """

    def decorator(handler_class: Callable[..., WebhookHandler]) -> Callable[..., WebhookHandler]:
        for event_type in event_types:
            key = getattr(event_type, "value", event_type)
            WEBHOOK_HANDLERS[key] = handler_class
            logger.debug(f"Registered webhook handler for {key}")
        return handler_class

    return decorator


def classify(envelope: EventEnvelope, audit: AuditLog | None = None) -> WebhookHandler | None:
    """Build the handler for ``envelope``, or None if its type is not reconciled."""
    handler_class = WEBHOOK_HANDLERS.get(envelope.event_type)
    if handler_class is None:
        return None
    return handler_class(envelope, audit=audit)


# =============================================================================
# Dispatch
# =============================================================================


def dispatch_webhook(handler: WebhookHandler) -> HandlerOutcome:
    """
    Drive ``handler`` through status validation, resolution and processing.

    Processing runs in one transaction: a MalformedEventError (or any other
    exception) raised by the handler rolls back every ledger write it made.

    Returns:
        HandlerOutcome; UNRESOLVED when the invoice may appear later, POISON
        when the notification names an invoice that does not exist
    """
    envelope = handler.envelope
    log_context = {"event_id": envelope.event_id, "event_type": envelope.event_type}

    if not handler.validate_status():
        logger.info(f"Ignoring {envelope.event_type}: status not handled", extra=log_context)
        return HandlerOutcome.ignored(f"{envelope.event_type} not applicable")

    resolution = handler.resolve_invoice()
    if not resolution.found:
        if resolution.explicit_id_missing:
            logger.error(f"Poison {envelope.event_type}: named invoice does not exist", extra=log_context)
            return HandlerOutcome.poison("Invoice named in custom data does not exist")
        logger.warning(f"Unresolved {envelope.event_type}, asking Paddle to retry", extra=log_context)
        return HandlerOutcome.unresolved()

    invoice = resolution.invoice
    logger.info(
        f"Dispatching {envelope.event_type} for invoice {invoice.public_id}",
        extra={**log_context, "invoice_id": invoice.pk, "strategy": resolution.strategy},
    )
    with transaction.atomic():
        return handler.process_validated(invoice)
