"""
Tests for notification decoding.
"""

import json
from decimal import Decimal

import pytest

from payments.exceptions import MalformedEventError
from payments.webhooks.envelope import EventType, parse_envelope
from payments.webhooks.tests.events import body, transaction_data


class TestParseEnvelope:
    def test_decodes_known_event(self):
        """Should expose the envelope fields and keep the raw body."""
        raw = body("transaction.completed", transaction_data(), event_id="evt_01")

        envelope = parse_envelope(raw)

        assert envelope.event_id == "evt_01"
        assert envelope.event_type == EventType.TRANSACTION_COMPLETED
        assert envelope.object_id == "txn_01"
        assert envelope.raw_body == raw
        assert envelope.received_at is not None

    def test_unknown_event_type_is_kept(self):
        """Should decode event types this integration does not handle."""
        envelope = parse_envelope(json.dumps({"event_type": "foo.bar", "data": {}}).encode())

        assert envelope.event_type == "foo.bar"
        assert envelope.event_id == ""

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"\xff\xfe",
            b"[]",
            b'{"data": {}}',
            b'{"event_type": 5, "data": {}}',
            b'{"event_type": "transaction.completed"}',
            b'{"event_type": "transaction.completed", "data": []}',
        ],
    )
    def test_malformed_bodies_raise(self, raw):
        with pytest.raises(MalformedEventError):
            parse_envelope(raw)


class TestEnvelopeAccess:
    @pytest.fixture
    def envelope(self):
        return parse_envelope(body("transaction.completed", transaction_data(total="920", currency="EUR")))

    def test_get_nested(self, envelope):
        assert envelope.get("details", "totals", "total") == "920"

    def test_get_missing_returns_default(self, envelope):
        assert envelope.get("details", "nope", default="x") == "x"

    def test_get_null_returns_default(self, envelope):
        """Should treat JSON null as missing."""
        assert envelope.get("custom_data", default={}) == {}

    def test_require_present(self, envelope):
        assert envelope.require("currency_code") == "EUR"

    def test_require_missing_raises_with_path(self, envelope):
        """Should name the missing path in the error."""
        with pytest.raises(MalformedEventError) as exc_info:
            envelope.require("details", "payout_totals", "total")

        assert exc_info.value.details["path"] == "data.details.payout_totals.total"
        assert exc_info.value.error_code == "MALFORMED_EVENT"

    def test_require_amount(self, envelope):
        assert envelope.require_amount("details", "totals", "total", currency="EUR") == Decimal("9.20")

    def test_get_amount_defaults_to_zero(self, envelope):
        assert envelope.get_amount("details", "totals", "discount", currency="EUR") == Decimal("0.00")

    @pytest.mark.parametrize("value", ["12x", "NaN", "Infinity", {"amount": "1"}])
    def test_invalid_amount_raises_with_path(self, envelope, value):
        with pytest.raises(MalformedEventError) as exc_info:
            envelope.parse_amount(value, "EUR", "details", "totals", "total")

        assert exc_info.value.details["path"] == "data.details.totals.total"
