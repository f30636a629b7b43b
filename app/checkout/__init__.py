"""
Checkout app for gateway-agnostic card payments.

This app handles:
- Order snapshots (line items and totals) built from baskets
- Payment forms for client-side card tokenization
- Synchronous payment confirmation
- Asynchronous gateway notifications (Stripe webhooks, Payone TransactionStatus)
- Gateway customer references for stored cards

Usage:
    from checkout.gateways import get_gateway
    from checkout.services import PaymentAdapter
    from checkout.snapshot import build_snapshot

    adapter = PaymentAdapter(get_gateway("stripe"))
    result = adapter.initiate(order, build_snapshot(basket), {"paymenttoken": token})
"""
