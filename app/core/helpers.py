"""
Helper functions for common infrastructure operations.

These utilities are pure infrastructure: they have no knowledge of
invoices, subscribers or payment providers.

Usage:
    from core.helpers import get_client_ip, mask_secrets

    ip = get_client_ip(request)
    safe = mask_secrets(text, {api_key: "***api_key***"})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For header for proxy chains.

    Args:
        request: Django HTTP request

    Returns:
        Client IP address string
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # Take the first IP in the chain (original client)
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip


def mask_secrets(text: str, replacements: Mapping[str, str]) -> str:
    """
    Replace every occurrence of each secret in ``text`` with its placeholder.

    Empty secrets are skipped so an unset setting never blanks the text.

    Example:
        mask_secrets("Bearer pdl_123", {"pdl_123": "***api_key***"})
        # "Bearer ***api_key***"
    """
    for secret, placeholder in replacements.items():
        if secret:
            text = text.replace(secret, placeholder)
    return text
