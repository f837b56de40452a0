"""
Paddle Billing API adapter.

This module provides the PaddleAdapter class which encapsulates all
Paddle API interactions. All Paddle calls should go through this adapter
to ensure consistent error handling, timeouts, audit logging and
observability.

Features:
- Sandbox / live base URL chosen from the client token
- Bearer authentication and a pinned Paddle-Version header
- Configurable timeout on every call, no automatic retries
- Error translation to PaddleAPIError
- Structured logging with timing metrics
- Masked request/response audit trail (InvoiceLog)

Configuration (via settings):
- PADDLE_API_KEY: Paddle API key (server side)
- PADDLE_CLIENT_TOKEN: Paddle.js client token; "test_" prefix selects sandbox
- PADDLE_API_TIMEOUT_SECONDS: API call timeout (default: 15)

Usage:
    from payments.adapters import PaddleAdapter

    transaction = PaddleAdapter.get_transaction(
        "txn_01h...",
        include=("address", "business", "customer"),
    )
    PaddleAdapter.cancel_subscription("sub_01h...", invoice=invoice)
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings

from payments.audit import AuditLog
from payments.exceptions import PaddleAPIError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ledger.models import Invoice


LIVE_URL = "https://api.paddle.com/"
SANDBOX_URL = "https://sandbox-api.paddle.com/"
API_VERSION = "1"
USER_AGENT = "paddle-billing-backend/1.0"

# Error codes Paddle returns when cancelling an already cancelled subscription
ALREADY_CANCELLED_CODES = frozenset(
    {
        "subscription_update_when_canceled",
        "subscription_is_canceled_action_invalid",
    }
)

CUSTOMER_ALREADY_EXISTS = "customer_already_exists"

_CUSTOMER_ID_RE = re.compile(r"\bctm_[a-z0-9]+\b")


def extract_existing_customer_id(detail: str) -> str:
    """
    Pull the existing customer id out of a customer_already_exists detail.

    Paddle's message reads "customer email conflicts with customer of id
    ctm_...". Falls back to the fixed offset the id starts at.
    """
    match = _CUSTOMER_ID_RE.search(detail or "")
    if match:
        return match.group(0)
    return (detail or "")[45:].strip()


class PaddleAdapter:
    """
    Adapter for Paddle Billing API operations.

    All methods are classmethods - no instance state is maintained.
    Failures raise PaddleAPIError; callers decide whether a failure is
    fatal (checkout) or only worth logging (webhook enrichment).

    Usage:
        data = PaddleAdapter.create_transaction(params, invoice=invoice)
        url = PaddleAdapter.get_invoice_pdf_url("txn_01h...")
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def is_sandbox() -> bool:
        return (settings.PADDLE_CLIENT_TOKEN or "").startswith("test_")

    @classmethod
    def base_url(cls) -> str:
        return SANDBOX_URL if cls.is_sandbox() else LIVE_URL

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _headers(cls) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "Authorization": f"Bearer {settings.PADDLE_API_KEY}",
            "Paddle-Version": API_VERSION,
        }

    @classmethod
    def _client(cls) -> httpx.Client:
        return httpx.Client(
            base_url=cls.base_url(),
            headers=cls._headers(),
            timeout=settings.PADDLE_API_TIMEOUT_SECONDS,
        )

    # =========================================================================
    # Transactions
    # =========================================================================

    @classmethod
    def get_transaction(
        cls,
        transaction_id: str,
        include: Iterable[str] = (),
        invoice: Invoice | None = None,
    ) -> dict[str, Any]:
        """
        Fetch a transaction, optionally with related entities included.

        Raises:
            PaddleAPIError: Request failed or the response has no transaction
        """
        params = {"include": ",".join(include)} if include else None
        body = cls._request(
            "GET",
            f"transactions/{transaction_id}",
            params=params,
            title="GET TRANSACTION",
            invoice=invoice,
        )
        data = body.get("data") or {}
        if not data.get("id"):
            raise PaddleAPIError("Bad response: transaction has no id", status_code=200, payload=body)
        return data

    @classmethod
    def create_transaction(cls, params: dict[str, Any], invoice: Invoice | None = None) -> dict[str, Any]:
        """
        Create a draft transaction for non-catalog items.

        Raises:
            PaddleAPIError: Request failed or the response has no transaction id
        """
        body = cls._request(
            "POST",
            "transactions",
            json=params,
            title="DRAFT TRANSACTION",
            invoice=invoice,
            expected=(200, 201),
        )
        data = body.get("data") or {}
        if not data.get("id"):
            raise PaddleAPIError("Bad response: draft transaction has no id", status_code=201, payload=body)
        return data

    @classmethod
    def get_invoice_pdf_url(cls, transaction_id: str, invoice: Invoice | None = None) -> str:
        """Temporary URL of the PDF invoice Paddle issued for a transaction."""
        body = cls._request(
            "GET",
            f"transactions/{transaction_id}/invoice",
            title="PDF INVOICE",
            invoice=invoice,
        )
        url = (body.get("data") or {}).get("url")
        if not url:
            raise PaddleAPIError("Bad response: no invoice url", status_code=200, payload=body)
        return url

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def cancel_subscription(
        cls,
        subscription_id: str,
        effective_from: str = "immediately",
        invoice: Invoice | None = None,
    ) -> dict[str, Any]:
        """
        Cancel a subscription.

        Raises:
            PaddleAPIError: Request failed. ``e.code`` is one of
                ALREADY_CANCELLED_CODES when Paddle had already cancelled it.
        """
        body = cls._request(
            "POST",
            f"subscriptions/{subscription_id}/cancel",
            json={"effective_from": effective_from},
            title="CANCEL",
            invoice=invoice,
        )
        return body.get("data") or {}

    @classmethod
    def get_update_payment_method_transaction(
        cls,
        subscription_id: str,
        invoice: Invoice | None = None,
    ) -> dict[str, Any]:
        body = cls._request(
            "GET",
            f"subscriptions/{subscription_id}/update-payment-method-transaction",
            title="CARD UPDATE",
            invoice=invoice,
        )
        return body.get("data") or {}

    @classmethod
    def get_update_payment_method_url(cls, subscription_id: str, invoice: Invoice | None = None) -> str:
        """Checkout URL where the customer can replace the subscription's payment method."""
        data = cls.get_update_payment_method_transaction(subscription_id, invoice=invoice)
        url = (data.get("checkout") or {}).get("url")
        if not url:
            raise PaddleAPIError("Bad response: no checkout url", status_code=200, payload={"data": data})
        return url

    # =========================================================================
    # Adjustments
    # =========================================================================

    @classmethod
    def create_adjustment(
        cls,
        transaction_id: str,
        items: list[dict[str, Any]],
        reason: str,
        action: str = "refund",
        invoice: Invoice | None = None,
    ) -> dict[str, Any]:
        """
        Request an adjustment (refund) against a completed transaction.

        Paddle answers 201 with the adjustment pending approval; the refund
        is recorded when the adjustment webhook arrives.
        """
        body = cls._request(
            "POST",
            "adjustments",
            json={
                "action": action,
                "items": items,
                "transaction_id": transaction_id,
                "reason": reason,
            },
            title="REFUND",
            invoice=invoice,
            expected=(201,),
        )
        return body.get("data") or {}

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def create_customer(cls, email: str, name: str, invoice: Invoice | None = None) -> str:
        """
        Create a customer and return its id.

        An existing customer with the same email is not an error: Paddle
        answers 409 customer_already_exists and the existing id is returned.
        Archived customers are not reactivated.
        """
        try:
            body = cls._request(
                "POST",
                "customers",
                json={"email": email, "name": name},
                title="CUSTOMER UPDATE",
                invoice=invoice,
                expected=(201,),
            )
        except PaddleAPIError as e:
            if e.status_code == 409 and e.code == CUSTOMER_ALREADY_EXISTS:
                return extract_existing_customer_id(e.detail)
            raise
        customer_id = (body.get("data") or {}).get("id")
        if not customer_id:
            raise PaddleAPIError("Bad response: customer has no id", status_code=201, payload=body)
        return customer_id

    @classmethod
    def create_address(
        cls,
        customer_id: str,
        address: dict[str, Any],
        invoice: Invoice | None = None,
    ) -> str:
        body = cls._request(
            "POST",
            f"customers/{customer_id}/addresses",
            json=address,
            title="ADDRESS UPDATE",
            invoice=invoice,
            expected=(200, 201),
        )
        return (body.get("data") or {}).get("id", "")

    @classmethod
    def update_address(
        cls,
        customer_id: str,
        address_id: str,
        address: dict[str, Any],
        invoice: Invoice | None = None,
    ) -> str:
        """Update an address, reactivating it in case it was archived."""
        body = cls._request(
            "PATCH",
            f"customers/{customer_id}/addresses/{address_id}",
            json={**address, "status": "active"},
            title="ADDRESS UPDATE",
            invoice=invoice,
            expected=(200, 201),
        )
        return (body.get("data") or {}).get("id", "") or address_id

    @classmethod
    def list_businesses(cls, customer_id: str, invoice: Invoice | None = None) -> list[dict[str, Any]]:
        body = cls._request(
            "GET",
            f"customers/{customer_id}/businesses",
            params={"per_page": 200},
            title="GET BUSINESS",
            invoice=invoice,
        )
        return list(body.get("data") or [])

    # =========================================================================
    # Transport
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        *,
        title: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        invoice: Invoice | None = None,
        expected: tuple[int, ...] = (200,),
    ) -> dict[str, Any]:
        """
        Send one request and return the decoded body.

        Raises:
            PaddleAPIError: Transport failure, unexpected status or a body
                that is not JSON
        """
        logger = cls.get_logger()
        audit = AuditLog(title, invoice=invoice)

        log_context = {
            "operation": title,
            "method": method,
            "path": path,
            "invoice_id": invoice.pk if invoice is not None else None,
        }

        start_time = time.time()
        logger.info("Starting Paddle operation", extra=log_context)
        audit.add({"method": method, "url": f"{cls.base_url()}{path}", "params": params, "body": json})

        try:
            with cls._client() as client:
                response = client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            audit.add(f"Request failed: {type(e).__name__}: {e}")
            audit.save()
            cls._handle_transport_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        audit.add({"status": response.status_code, "body": response.text})
        audit.save()

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code not in expected or not isinstance(body, dict):
            cls._handle_error_response(response.status_code, body, log_context, duration_ms)

        logger.info(
            "Paddle operation completed",
            extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return body

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_error_response(
        cls,
        status_code: int,
        body: Any,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate an unexpected Paddle response into PaddleAPIError.

        Raises:
            PaddleAPIError: Always
        """
        logger = cls.get_logger()
        payload = body if isinstance(body, dict) else {}
        error_info = payload.get("error") if isinstance(payload.get("error"), dict) else {}
        error = PaddleAPIError(
            error_info.get("detail") or f"Paddle API returned HTTP {status_code}",
            status_code=status_code,
            payload=payload,
        )

        level = logging.WARNING if 400 <= status_code < 500 else logging.ERROR
        logger.log(
            level,
            f"Paddle API error: {error.message}",
            extra={
                **log_context,
                "status_code": status_code,
                "paddle_code": error.code,
                "duration_ms": duration_ms,
            },
        )
        raise error

    @classmethod
    def _handle_transport_error(
        cls,
        error: httpx.HTTPError,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate httpx transport failures into PaddleAPIError.

        Raises:
            PaddleAPIError: Always, with status_code 0
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, httpx.TimeoutException):
            logger.error("Timeout calling Paddle", extra=log_context)
            raise PaddleAPIError(
                "Paddle API request timed out",
                code="timeout",
            ) from error

        logger.error(
            f"Connection error to Paddle: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise PaddleAPIError(
            f"Could not reach Paddle: {error}",
            code="network_error",
        ) from error
