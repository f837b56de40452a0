"""
Payment adapters for external services.

PaddleAdapter is the only code that talks HTTP to Paddle. All calls go
through it to ensure consistent error handling, timeouts and the masked
audit trail.

Usage:
    from payments.adapters import PaddleAdapter

    PaddleAdapter.cancel_subscription("sub_01h...")
"""

from payments.adapters.paddle_adapter import (
    ALREADY_CANCELLED_CODES,
    LIVE_URL,
    SANDBOX_URL,
    PaddleAdapter,
    extract_existing_customer_id,
)

__all__ = [
    "ALREADY_CANCELLED_CODES",
    "LIVE_URL",
    "SANDBOX_URL",
    "PaddleAdapter",
    "extract_existing_customer_id",
]
