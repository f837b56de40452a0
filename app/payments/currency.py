"""
Currency conversion for Paddle amounts.

Paddle sends amounts as integer strings in the currency's minor units
("920" is 9.20 EUR, "1500" is 1500 JPY). It may also collect a payment in
a currency other than the invoice's (localized pricing). The first time
that happens the ratio between what was collected and what the invoice
asked for is stored on the invoice, and every later amount for that
invoice (payments, refunds, chargebacks) is converted with that same
rate, so a refund nets out exactly against the payment it reverses.

Usage:
    from payments.currency import minor_to_major, resolve_amount

    amount = minor_to_major("920", "EUR")               # Decimal("9.20")
    resolve_amount(invoice, amount, "EUR")              # Decimal("10.00") for a 10.00 USD invoice
    resolve_amount(invoice, Decimal("10.00"), "USD")    # None: ledger default applies
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

from ledger.services import LedgerService
from payments.models import PaddleInvoiceData

if TYPE_CHECKING:
    from ledger.models import Invoice


logger = logging.getLogger(__name__)

# Paddle supported currencies and their minor-unit precision
SUPPORTED_CURRENCIES: dict[str, int] = {
    "USD": 2, "EUR": 2, "GBP": 2, "JPY": 0, "AUD": 2, "CAD": 2, "CHF": 2,
    "HKD": 2, "SGD": 2, "SEK": 2, "ARS": 2, "BRL": 2, "CNY": 2, "COP": 2,
    "CZK": 2, "DKK": 2, "HUF": 2, "ILS": 2, "INR": 2, "KRW": 0, "MXN": 2,
    "NOK": 2, "NZD": 2, "PLN": 2, "RUB": 2, "THB": 2, "TRY": 2, "TWD": 2,
    "UAH": 2,
}

DEFAULT_PRECISION = 2

# Precision the exchange-rate snapshot is stored with (matches the model field)
RATE_QUANTUM = Decimal("1e-10")


def currency_precision(currency: str) -> int:
    """Number of decimal places in ``currency``'s minor unit."""
    return SUPPORTED_CURRENCIES.get((currency or "").upper(), DEFAULT_PRECISION)


def is_supported_currency(currency: str) -> bool:
    return (currency or "").upper() in SUPPORTED_CURRENCIES


def quantize(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to ``currency``'s minor unit."""
    exponent = Decimal(1).scaleb(-currency_precision(currency))
    return Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def minor_to_major(amount: int | str, currency: str) -> Decimal:
    """
    Convert a Paddle minor-unit amount to a decimal amount.

    Raises:
        ValueError: If ``amount`` is not a number
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return quantize(value.scaleb(-currency_precision(currency)), currency)


def major_to_minor(amount: Decimal | int | str, currency: str) -> int:
    """Convert a decimal amount to Paddle minor units, rounding half-up."""
    scaled = Decimal(str(amount)).scaleb(currency_precision(currency))
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# =============================================================================
# Exchange Rate Snapshot
# =============================================================================


def _reference_amount(invoice: Invoice) -> Decimal:
    """
    Invoice amount the next payment is expected to be.

    The first total while nothing has been paid, the recurring total
    afterwards. A free first period gives no reference, so the first
    localized charge after a trial stores no rate.
    """
    if LedgerService.payments_count(invoice) == 0:
        return invoice.first_total
    return invoice.second_total


def _store_rate(invoice: Invoice, rate: Decimal, currency: str) -> PaddleInvoiceData:
    """
    Store the rate unless one is already set, and return the stored row.

    The conditional UPDATE makes concurrent first payments agree on one
    rate: whichever UPDATE lands first wins, the other matches no row.
    """
    data = PaddleInvoiceData.for_invoice(invoice)
    updated = PaddleInvoiceData.objects.filter(pk=data.pk, xrate__isnull=True).update(
        xrate=rate,
        xcurrency=currency,
    )
    data.refresh_from_db(fields=["xrate", "xcurrency"])
    if updated:
        logger.info(
            f"Exchange rate {data.xrate} {currency}/{invoice.currency} stored for invoice {invoice.public_id}",
            extra={"invoice_id": invoice.pk, "xrate": str(data.xrate), "xcurrency": currency},
        )
    return data


def stored_rate(invoice: Invoice) -> Decimal | None:
    data = PaddleInvoiceData.objects.filter(invoice=invoice).only("xrate").first()
    return data.xrate if data is not None else None


def resolve_amount(invoice: Invoice, event_amount: Decimal, event_currency: str) -> Decimal | None:
    """
    Amount to record on ``invoice`` for a payment of ``event_amount``.

    Returns None when the payment is in the invoice currency, telling the
    ledger to use the invoice's own total (Paddle's total includes tax the
    ledger does not track). Otherwise converts with the stored rate,
    computing and storing it first if this is the first localized payment.
    With no usable reference amount the raw amount is returned.
    """
    if (event_currency or "").upper() == invoice.currency.upper():
        return None

    rate = stored_rate(invoice)
    if rate is None:
        reference = _reference_amount(invoice)
        if reference <= 0 or event_amount <= 0:
            logger.warning(
                f"No basis to compute an exchange rate for invoice {invoice.public_id}",
                extra={"invoice_id": invoice.pk, "event_currency": event_currency},
            )
            return event_amount
        candidate = (Decimal(event_amount) / reference).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
        rate = _store_rate(invoice, candidate, event_currency.upper()).xrate

    return quantize(Decimal(event_amount) / rate, invoice.currency)


def convert_with_stored_rate(invoice: Invoice, amount: Decimal, currency: str) -> Decimal:
    """
    Convert an adjustment amount into the invoice currency.

    Refunds and chargebacks never create a rate: the stored one is used,
    and without one (or in the invoice currency) the amount is returned
    unchanged.
    """
    if (currency or "").upper() == invoice.currency.upper():
        return amount

    rate = stored_rate(invoice)
    if rate is None:
        logger.warning(
            f"No stored exchange rate for invoice {invoice.public_id}; using raw {currency} amount",
            extra={"invoice_id": invoice.pk, "currency": currency},
        )
        return amount
    return quantize(Decimal(amount) / rate, invoice.currency)


def to_transaction_currency(invoice: Invoice, amount: Decimal) -> tuple[Decimal, str]:
    """
    Convert an invoice-currency amount back into the currency Paddle charged.

    Used for partial refund requests. Returns ``(amount, currency)``.
    """
    data = PaddleInvoiceData.objects.filter(invoice=invoice).first()
    if data is None or data.xrate is None or not data.xcurrency:
        return quantize(amount, invoice.currency), invoice.currency
    return quantize(Decimal(amount) * data.xrate, data.xcurrency), data.xcurrency
