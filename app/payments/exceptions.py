"""
Payment-specific exceptions for the Paddle integration.

Exception Hierarchy:
    PaddleError (base for Paddle API failures, inherits ExternalServiceError)
    └── PaddleAPIError - Non-2xx response or transport failure

    WebhookError (base for inbound notification failures, inherits ValidationError)
    ├── WebhookSignatureError - Signature missing or not matching
    └── MalformedEventError - Body is not a valid event, or a known event
                              type is missing a field it must carry

Usage:
    from payments.exceptions import MalformedEventError, PaddleAPIError

    try:
        PaddleAdapter.cancel_subscription(subscription_id)
    except PaddleAPIError as e:
        if e.code == "subscription_is_canceled_action_invalid":
            ...  # already cancelled upstream

    raise MalformedEventError(
        "transaction.completed is missing data.details.totals",
        details={"path": "details.totals"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ExternalServiceError, ValidationError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Paddle API Exceptions
# =============================================================================


class PaddleError(ExternalServiceError):
    """
    Base exception for all Paddle API failures.

    Remote failures are never fatal to webhook reconciliation: callers
    catch PaddleError, log it and carry on with the primary transition.
    """

    default_error_code: str = "PADDLE_ERROR"


class PaddleAPIError(PaddleError):
    """
    Paddle answered with an error, or could not be reached.

    Attributes:
        status_code: HTTP status (0 for transport failures)
        payload: Decoded response body, if any
        code: Paddle's machine-readable error code (payload["error"]["code"])

    Example:
        except PaddleAPIError as e:
            if e.status_code == 409 and e.code == "customer_already_exists":
                customer_id = extract_customer_id(e.detail)
    """

    default_error_code: str = "PADDLE_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        payload: dict[str, Any] | None = None,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.payload = payload if isinstance(payload, dict) else {}
        self.code = code or self._extract_error_code()
        details = {**(details or {}), "status_code": status_code}
        if self.code:
            details["paddle_code"] = self.code
        super().__init__(message, details=details)

    def _extract_error_code(self) -> str | None:
        error = self.payload.get("error")
        if isinstance(error, dict):
            return error.get("code") or error.get("type")
        return None

    @property
    def detail(self) -> str:
        """Paddle's human-readable error detail, or the message."""
        error = self.payload.get("error")
        if isinstance(error, dict) and error.get("detail"):
            return str(error["detail"])
        return self.message


# =============================================================================
# Webhook Exceptions
# =============================================================================


class WebhookError(ValidationError):
    """Base exception for inbound notifications that cannot be accepted."""

    default_error_code: str = "WEBHOOK_ERROR"


class WebhookSignatureError(WebhookError):
    """The Paddle-Signature header is missing, malformed or does not match."""

    default_error_code: str = "WEBHOOK_SIGNATURE_INVALID"


class MalformedEventError(WebhookError):
    """
    The notification body cannot be trusted to drive a ledger change.

    Raised for undecodable JSON, a missing event_type / data object, and
    for known event types missing a field they must carry. Raising inside
    a handler rolls back everything the handler wrote.
    """

    default_error_code: str = "MALFORMED_EVENT"
