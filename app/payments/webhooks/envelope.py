"""
Decoded Paddle notification.

parse_envelope() turns the raw request body into an immutable
EventEnvelope or fails with MalformedEventError; there is no half-decoded
state. Handlers read the payload through require() for fields the event
type must carry, and through get() for optional ones.

Usage:
    from payments.webhooks.envelope import EventType, parse_envelope

    envelope = parse_envelope(request.body)
    if envelope.event_type == EventType.TRANSACTION_COMPLETED:
        total = envelope.require("details", "totals", "total")
        subscription_id = envelope.get("subscription_id")
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from payments.currency import minor_to_major
from payments.exceptions import MalformedEventError

if TYPE_CHECKING:
    from decimal import Decimal

_MISSING = object()


class EventType(str, Enum):
    """Paddle event types this integration reconciles."""

    TRANSACTION_COMPLETED = "transaction.completed"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    ADJUSTMENT_CREATED = "adjustment.created"
    ADJUSTMENT_UPDATED = "adjustment.updated"


@dataclass(frozen=True)
class EventEnvelope:
    """
    One Paddle notification.

    Attributes:
        event_id: Paddle event id (evt_xxx)
        event_type: e.g. "transaction.completed"; unknown types are kept as-is
        occurred_at: When the event happened at Paddle (RFC 3339 string)
        notification_id: Delivery id (ntf_xxx); differs between redeliveries
        data: The entity the event is about
        raw_body: Body exactly as received, for signature checks and audit
        received_at: When this process received it
    """

    event_id: str
    event_type: str
    occurred_at: str
    notification_id: str
    data: dict[str, Any]
    raw_body: bytes = field(repr=False)
    received_at: datetime

    def get(self, *path: str, default: Any = None) -> Any:
        """Nested lookup in ``data``; ``default`` when any step is missing or null."""
        value = _lookup(self.data, path)
        return default if value is _MISSING or value is None else value

    def require(self, *path: str) -> Any:
        """
        Nested lookup in ``data`` for a field the event must carry.

        Raises:
            MalformedEventError: If any step is missing or null
        """
        value = _lookup(self.data, path)
        if value is _MISSING or value is None:
            dotted = ".".join(path)
            raise MalformedEventError(
                f"{self.event_type} is missing data.{dotted}",
                details={"event_id": self.event_id, "path": f"data.{dotted}"},
            )
        return value

    def require_amount(self, *path: str, currency: str) -> Decimal:
        """require() for a minor-unit amount, returned in major units."""
        return self.parse_amount(self.require(*path), currency, *path)

    def get_amount(self, *path: str, currency: str, default: Any = 0) -> Decimal:
        return self.parse_amount(self.get(*path, default=default), currency, *path)

    def parse_amount(self, value: Any, currency: str, *path: str) -> Decimal:
        """
        Convert a minor-unit amount found at ``path``.

        Raises:
            MalformedEventError: If the value is not a number
        """
        try:
            return minor_to_major(value, currency)
        except ValueError:
            dotted = ".".join(path)
            raise MalformedEventError(
                f"{self.event_type} has an invalid amount at data.{dotted}: {value!r}",
                details={"event_id": self.event_id, "path": f"data.{dotted}"},
            ) from None

    @property
    def object_id(self) -> str:
        return str(self.data.get("id") or "")


def _lookup(data: Any, path: tuple[str, ...]) -> Any:
    value = data
    for key in path:
        if not isinstance(value, dict) or key not in value:
            return _MISSING
        value = value[key]
    return value


def parse_envelope(raw_body: bytes, received_at: datetime | None = None) -> EventEnvelope:
    """
    Decode a notification body.

    Raises:
        MalformedEventError: Body is not a JSON object with a string
            event_type and an object data
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedEventError("Notification body is not valid JSON", details={"error": str(e)}) from e

    if not isinstance(payload, dict):
        raise MalformedEventError("Notification body is not a JSON object")

    event_type = payload.get("event_type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEventError("Notification has no event_type")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedEventError(
            f"{event_type} has no data object",
            details={"event_id": payload.get("event_id")},
        )

    return EventEnvelope(
        event_id=str(payload.get("event_id") or ""),
        event_type=event_type,
        occurred_at=str(payload.get("occurred_at") or ""),
        notification_id=str(payload.get("notification_id") or ""),
        data=data,
        raw_body=raw_body,
        received_at=received_at or timezone.now(),
    )
