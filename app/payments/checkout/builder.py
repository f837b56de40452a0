"""
Non-catalog transaction builder.

Paddle can bill for prices and products defined inline on a transaction,
so nothing has to be synced to the Paddle catalog. Each invoice item
becomes one or two transaction items:

    one-time (no second period)   single price, no billing cycle
    free trial (first total 0)    recurring price with a trial period
    simple rebill                 recurring price, same first and second terms
    complex rebill                "First Payment" one-time item, plus the
                                  recurring price starting after a trial
                                  that covers the first period

Paddle subscriptions cannot change price or period after the first
charge, hence the split for complex rebills.

Usage:
    from payments.checkout.builder import build_transaction_params

    params = build_transaction_params(invoice, custom_data={"utm_medium": "email"})
    PaddleAdapter.create_transaction(params, invoice=invoice)
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from django.conf import settings

from ledger.models import RECURRING_REBILLS
from ledger.periods import Period
from payments.currency import major_to_minor
from payments.webhooks.resolver import CUSTOM_DATA_INVOICE_KEY

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ledger.models import Invoice, InvoiceItem


TAX_MODE = "account_setting"
TAX_CATEGORY = "standard"


def rebill_text(rebill_times: int) -> str:
    if rebill_times == 0:
        return "One Time Charge"
    if rebill_times == 1:
        return "Bills ONE Time"
    if rebill_times == RECURRING_REBILLS:
        return "Rebills Until Cancelled"
    return f"Bills {rebill_times} Times"


def minor_amount(amount, currency: str) -> str:
    """Paddle unit price: minor units as a string."""
    return str(major_to_minor(amount, currency))


def _cycle(period: str) -> dict[str, Any]:
    parsed = Period.parse(period)
    return {"interval": parsed.paddle_interval, "frequency": parsed.paddle_frequency}


def _usable_image_url(url: str | None) -> str | None:
    """Paddle rejects relative image URLs."""
    if url and urlparse(url).scheme:
        return url
    return None


def build_items(item: InvoiceItem, image_url: str | None = None) -> list[dict[str, Any]]:
    """Transaction items for one invoice item."""
    recurring = {
        "quantity": item.qty,
        "price": {
            "description": item.terms,
            "name": f"Subscription: {rebill_text(item.rebill_times)}",
            "billing_cycle": _cycle(item.second_period) if item.second_period else None,
            "trial_period": _cycle(item.first_period),
            "tax_mode": TAX_MODE,
            "unit_price": {
                "amount": minor_amount(item.second_total or 0, item.currency),
                "currency_code": item.currency,
            },
            "quantity": {"minimum": item.qty, "maximum": item.qty},
            "custom_data": {"invoice_item": item.item_id, "period": "first_period"},
            "product": {
                "name": item.title,
                "description": item.description,
                "tax_category": TAX_CATEGORY,
                "image_url": _usable_image_url(item.image_url) or _usable_image_url(image_url),
            },
        },
    }
    first_text = Period.parse(item.first_period).text

    if not item.second_period:
        one_time = _as_one_time(recurring, item)
        one_time["price"]["name"] = f"{'Purchase' if item.first_total else 'Free'}: {first_text}"
        return [one_time]

    if item.first_total == 0:
        return [recurring]

    if item.first_total == item.second_total and item.first_period == item.second_period:
        del recurring["price"]["trial_period"]
        return [recurring]

    first_payment = _as_one_time(recurring, item)
    first_payment["price"]["name"] = f"First Payment: {first_text}"
    recurring["price"]["custom_data"]["period"] = "second_period"
    return [first_payment, recurring]


def _as_one_time(template: dict[str, Any], item: InvoiceItem) -> dict[str, Any]:
    one_time = copy.deepcopy(template)
    del one_time["price"]["billing_cycle"]
    del one_time["price"]["trial_period"]
    one_time["price"]["unit_price"]["amount"] = minor_amount(item.first_total, item.currency)
    return one_time


def build_transaction_params(
    invoice: Invoice,
    *,
    custom_data: Mapping[str, Any] | None = None,
    image_url: str | None = None,
) -> dict[str, Any]:
    """
    Body for POST /transactions drafting a checkout for ``invoice``.

    Extra ``custom_data`` keys are passed through to Paddle; they never
    replace the invoice public id the notifications are resolved by.
    """
    data: dict[str, Any] = {CUSTOM_DATA_INVOICE_KEY: invoice.public_id}
    for key, value in (custom_data or {}).items():
        if isinstance(key, str) and key != CUSTOM_DATA_INVOICE_KEY:
            data[key] = value

    if image_url is None:
        image_url = settings.PADDLE_IMAGE_URL

    items: list[dict[str, Any]] = []
    for item in invoice.items.all():
        items.extend(build_items(item, image_url=image_url))

    return {
        "currency_code": invoice.currency,
        "custom_data": data,
        "items": items,
    }
