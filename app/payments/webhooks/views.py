"""
Webhook endpoint view for Paddle.

The view:
1. Verifies the Paddle-Signature header against the raw body
2. Decodes the notification envelope
3. Classifies it; event types without a handler are acknowledged untouched
4. Reconciles it synchronously in one database transaction
5. Writes the delivery to the audit log

Paddle redelivers anything not answered with a 2xx, so the status code is
the only retry control:

    200  processed, duplicate, ignored, or naming an invoice that does not exist
    400  bad signature or malformed notification
    404  invoice not found yet (retry later)

Usage:
    # In urls.py
    from payments.webhooks.views import paddle_webhook

    urlpatterns = [
        path("webhooks/paddle/", paddle_webhook, name="paddle_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import get_client_ip
from payments.audit import AuditLog
from payments.exceptions import MalformedEventError
from payments.webhooks.classifier import classify, dispatch_webhook
from payments.webhooks.envelope import parse_envelope
from payments.webhooks.signature import SIGNATURE_HEADER, WebhookSignatureVerifier


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def paddle_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and reconcile a Paddle notification.

    Example Paddle-Signature header:
        ts=1671552777;h1=eb4d0dc8853be92b7f063b9f3ba5233eb920a09459b6e6b2c26705b4364db151
    """
    raw_body = request.body
    signature = request.headers.get(SIGNATURE_HEADER, "")

    # Step 1: Verify signature
    if not WebhookSignatureVerifier.from_settings().verify(raw_body, signature):
        logger.warning(
            "Paddle webhook signature verification failed",
            extra={"has_signature": bool(signature)},
        )
        return HttpResponse("Invalid signature", status=400)

    # Step 2: Decode
    try:
        envelope = parse_envelope(raw_body)
    except MalformedEventError as e:
        logger.warning(f"Malformed Paddle webhook: {e.message}", extra=e.details)
        return HttpResponse("Malformed notification", status=400)

    log_context = {"event_id": envelope.event_id, "event_type": envelope.event_type}
    logger.info(f"Received Paddle webhook: {envelope.event_type}", extra=log_context)

    # Step 3: Classify
    audit = AuditLog.incoming(f"POSTBACK [{envelope.event_type}]", remote_addr=get_client_ip(request))
    handler = classify(envelope, audit=audit)
    if handler is None:
        logger.info(f"No handler for {envelope.event_type}, acknowledging", extra=log_context)
        return HttpResponse("Ignored", status=200)

    audit.add({"headers": {SIGNATURE_HEADER: signature}, "body": raw_body.decode("utf-8", "replace")})

    # Step 4: Reconcile
    try:
        outcome = dispatch_webhook(handler)
    except MalformedEventError as e:
        logger.warning(f"Malformed {envelope.event_type}: {e.message}", extra={**log_context, **e.details})
        audit.add(f"Rejected: {e.message}")
        audit.save()
        return HttpResponse("Malformed notification", status=400)

    # Step 5: Audit
    audit.invoice = outcome.invoice
    audit.add(f"{outcome.status.value}: {outcome.message}")
    audit.save()

    logger.info(
        f"Paddle webhook {envelope.event_type} {outcome.status.value}",
        extra={**log_context, "status": outcome.status.value, "http_status": outcome.http_status},
    )
    return HttpResponse(outcome.message or outcome.status.value, status=outcome.http_status)
