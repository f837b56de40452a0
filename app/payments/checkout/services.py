"""
Checkout service.

Prepares an invoice for payment with Paddle.js: makes sure the subscriber
exists at Paddle as a customer (with address and business where known),
drafts a non-catalog transaction for the invoice and returns the config
the frontend passes to Paddle.Checkout.open().

Usage:
    from payments.checkout import CheckoutService

    result = CheckoutService.create_checkout(invoice)
    if result:
        return Response(result.data)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.services import BaseService, ServiceResult
from payments.adapters import PaddleAdapter
from payments.checkout.builder import build_transaction_params
from payments.exceptions import PaddleAPIError
from payments.models import PaddleCustomerData

if TYPE_CHECKING:
    from ledger.models import Invoice, Subscriber


ADDRESS_DESCRIPTION = "Billing address"

# Paddle.js inline checkout settings
CHECKOUT_SETTINGS: dict[str, Any] = {
    "displayMode": "inline",
    "theme": "light",
    "locale": "en",
    "frameTarget": "checkout-container",
    "frameInitialHeight": "450",
    "frameStyle": "width:100%; min-width:312px; background-color:transparent; border:none;",
    "showAddTaxId": True,
    "allowLogout": False,
    "showAddDiscounts": False,
}


def address_params(subscriber: Subscriber) -> dict[str, Any]:
    return {
        "country_code": subscriber.country,
        "description": ADDRESS_DESCRIPTION,
        "first_line": subscriber.street,
        "second_line": subscriber.street2,
        "city": subscriber.city,
        "postal_code": subscriber.zip,
        "region": subscriber.state,
    }


def statement_descriptor() -> str:
    """What the charge shows on the buyer's card statement."""
    descriptor = settings.PADDLE_STATEMENT_DESCRIPTOR
    return f"PADDLE.NET*{descriptor}" if descriptor else "PADDLE.NET"


class CheckoutService(BaseService):
    """Drafts Paddle transactions for invoices."""

    # Paddle adapter - can be injected for testing
    _paddle_adapter: type | None = None

    @classmethod
    def get_paddle_adapter(cls) -> type:
        return cls._paddle_adapter or PaddleAdapter

    @classmethod
    def set_paddle_adapter(cls, adapter: type | None) -> None:
        cls._paddle_adapter = adapter

    @classmethod
    def create_checkout(
        cls,
        invoice: Invoice,
        custom_data: dict[str, Any] | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        """
        Draft a transaction for ``invoice`` and build the checkout config.

        Returns:
            ServiceResult with {"checkout": ..., "environment": ...,
            "statement_descriptor": ...}
        """
        log = cls.get_logger()
        log_context = {"invoice_id": invoice.pk, "public_id": invoice.public_id}

        if not invoice.items.exists():
            return ServiceResult.failure("Invoice has no items", error_code="INVOICE_EMPTY")

        log.info("Starting checkout", extra=log_context)
        try:
            customer = cls.sync_customer(invoice)
            params = build_transaction_params(invoice, custom_data=custom_data)
            transaction = cls.get_paddle_adapter().create_transaction(params, invoice=invoice)
        except PaddleAPIError as e:
            return cls.handle_exception(e, "Checkout")

        config: dict[str, Any] = {
            "transactionId": transaction["id"],
            "settings": {**CHECKOUT_SETTINGS, "successUrl": settings.PADDLE_CHECKOUT_SUCCESS_URL},
        }
        customer_config = cls._customer_config(customer)
        if customer_config:
            config["customer"] = customer_config

        log.info(f"Checkout drafted as transaction {transaction['id']}", extra=log_context)
        return ServiceResult.success(
            {
                "checkout": config,
                "environment": "sandbox" if PaddleAdapter.is_sandbox() else "production",
                "statement_descriptor": statement_descriptor(),
            }
        )

    @classmethod
    def sync_customer(cls, invoice: Invoice) -> PaddleCustomerData:
        """
        Create or update the subscriber's Paddle customer, address and business.

        Archived customers are not reactivated, so archiving a customer in
        Paddle keeps them from ordering. Businesses are never created (Paddle
        needs a business name we do not have); an existing one is matched
        on the tax id.

        Raises:
            PaddleAPIError: If Paddle rejects the customer or address
        """
        adapter = cls.get_paddle_adapter()
        subscriber = invoice.subscriber
        customer = PaddleCustomerData.for_subscriber(subscriber)

        if not customer.customer_id:
            customer_id = adapter.create_customer(subscriber.email, subscriber.full_name, invoice=invoice)
            customer.update_ids(customer_id=customer_id)

        if customer.customer_id and subscriber.country:
            params = address_params(subscriber)
            if customer.address_id:
                address_id = adapter.update_address(
                    customer.customer_id, customer.address_id, params, invoice=invoice
                )
            else:
                address_id = adapter.create_address(customer.customer_id, params, invoice=invoice)
            customer.update_ids(address_id=address_id)

        if customer.customer_id and not customer.business_id and subscriber.tax_id:
            for business in adapter.list_businesses(customer.customer_id, invoice=invoice):
                if subscriber.tax_id in (business.get("tax_identifier") or ""):
                    customer.update_ids(business_id=business.get("id"))
                    break

        return customer

    @staticmethod
    def _customer_config(customer: PaddleCustomerData) -> dict[str, Any]:
        """Address requires a customer; business requires an address."""
        if not customer.customer_id:
            return {}
        config: dict[str, Any] = {"id": customer.customer_id}
        if customer.address_id:
            config["address"] = {"id": customer.address_id}
            if customer.business_id:
                config["business"] = {"id": customer.business_id}
        return config
