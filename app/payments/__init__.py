"""
Paddle Billing integration.

Turns inbound Paddle webhook notifications into ledger transitions and
drafts outbound Paddle transactions for checkout.

Packages:
    webhooks: signature check, envelope parsing, classification,
              invoice resolution and the reconciliation handlers
    checkout: transaction draft builder and Paddle.js checkout config
    adapters: PaddleAdapter, the only code that talks HTTP to Paddle
    services: refund requests and subscription cancellation

Modules:
    currency: minor-unit conversion and the per-invoice exchange rate
    idempotency: apply_once(), the duplicate-delivery guard
    audit: AuditLog, masked request/notification log
"""
