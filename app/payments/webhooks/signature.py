"""
Paddle webhook signature verification.

Paddle signs every notification with the endpoint's secret key and sends
the result in the Paddle-Signature header:

    Paddle-Signature: ts=1671552777;h1=eb4d0dc8853be92b7f063b9f3ba5233e...

The signed payload is "{ts}:{raw_body}" and h1 is its HMAC-SHA256 in hex.
While a secret is being rotated the header may carry several h1 values;
any one of them matching authenticates the request.

Usage:
    from payments.webhooks.signature import WebhookSignatureVerifier

    verifier = WebhookSignatureVerifier.from_settings()
    if not verifier.verify(request.body, request.headers.get("Paddle-Signature", "")):
        return HttpResponse("Invalid signature", status=400)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from django.conf import settings

from payments.exceptions import WebhookSignatureError


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Paddle-Signature"


def parse_signature_header(header: str) -> tuple[str | None, list[str]]:
    """
    Split a Paddle-Signature header into its timestamp and h1 values.

    Unknown or malformed parts are skipped. Returns ``(None, [])`` for an
    empty header.
    """
    timestamp = None
    hashes: list[str] = []
    for chunk in (header or "").split(";"):
        key, sep, value = chunk.strip().partition("=")
        if not sep or not value:
            continue
        if key == "ts":
            timestamp = value
        elif key == "h1":
            hashes.append(value)
    return timestamp, hashes


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of ``"{timestamp}:{raw_body}"``."""
    payload = timestamp.encode("utf-8") + b":" + raw_body
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class WebhookSignatureVerifier:
    """
    Verifies Paddle-Signature headers against a shared secret.

    Verification never raises on bad input: a missing secret, a missing
    or malformed header and a non-numeric timestamp all verify as False.

    Args:
        secret: Endpoint secret key from the Paddle dashboard
        tolerance_seconds: Reject signatures older than this. None disables
            the replay window.
    """

    def __init__(self, secret: str, tolerance_seconds: int | None = None):
        self.secret = secret or ""
        self.tolerance_seconds = tolerance_seconds

    @classmethod
    def from_settings(cls) -> WebhookSignatureVerifier:
        return cls(
            secret=settings.PADDLE_WEBHOOK_SECRET,
            tolerance_seconds=settings.PADDLE_WEBHOOK_TOLERANCE_SECONDS,
        )

    def verify(self, raw_body: bytes, header: str, now: float | None = None) -> bool:
        """Return True if ``header`` is a valid signature of ``raw_body``."""
        if not self.secret:
            logger.error("Paddle webhook secret is not configured")
            return False

        timestamp, hashes = parse_signature_header(header)
        if timestamp is None or not hashes or not timestamp.isdigit():
            logger.warning("Paddle-Signature header missing or malformed")
            return False

        if self.tolerance_seconds is not None:
            age = (now if now is not None else time.time()) - int(timestamp)
            if age > self.tolerance_seconds:
                logger.warning(
                    "Paddle-Signature timestamp outside tolerance",
                    extra={"age_seconds": age, "tolerance_seconds": self.tolerance_seconds},
                )
                return False

        expected = compute_signature(self.secret, timestamp, raw_body)
        # Compare against every h1 so timing does not reveal which one matched
        matched = False
        for candidate in hashes:
            matched |= hmac.compare_digest(expected.encode(), candidate.encode("utf-8"))
        if not matched:
            logger.warning("Paddle-Signature mismatch")
        return matched

    def check(self, raw_body: bytes, header: str) -> None:
        """
        Raise unless ``header`` is a valid signature of ``raw_body``.

        Raises:
            WebhookSignatureError: If verification fails
        """
        if not self.verify(raw_body, header):
            raise WebhookSignatureError(
                "Invalid Paddle-Signature",
                details={"has_header": bool(header)},
            )
