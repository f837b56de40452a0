"""
Duplicate-delivery guard for ledger inserts.

Paddle delivers every notification at least once. Each money movement is
recorded as an insert the ledger guards with a unique constraint (payment
and access per receipt, refund and chargeback per adjustment), so a
redelivered notification fails at the database. apply_once() turns that
failure into a "already applied" no-op. There is no separate dedup table.

Usage:
    from payments.idempotency import apply_once

    applied = apply_once(
        lambda: LedgerService.add_payment(invoice, receipt_id=txn_id),
        label="payment",
        context={"invoice_id": invoice.pk, "receipt_id": txn_id},
    )
    if not applied:
        ...  # recorded by an earlier delivery
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.db import transaction

from ledger.exceptions import RecordNotUnique

if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger(__name__)


def apply_once(
    operation: Callable[[], Any],
    *,
    label: str,
    context: dict[str, Any] | None = None,
) -> bool:
    """
    Run ``operation`` in a savepoint.

    Returns True when it ran, False when the ledger reported the record as
    already present. Any other exception propagates.
    """
    context = context or {}
    try:
        with transaction.atomic():
            operation()
    except RecordNotUnique as e:
        logger.info(
            f"{label} already applied, skipping",
            extra={**context, "details": e.details},
        )
        return False
    return True
