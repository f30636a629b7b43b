"""
Checkout domain models.

This module contains all checkout-related models:
- CheckoutSession: Tokenization handshake per order and gateway
- GatewayNotification: Asynchronous notification tracking for idempotent reconciliation
- GatewayCustomer: Gateway customer references per user
- OrderPaymentStatus: Payment state per order (default Order Status Sink)
- OrderServiceAttribute: Order service-attribute bag (default Order Status Sink)
"""

from checkout.models.checkout_session import CheckoutSession
from checkout.models.gateway_customer import GatewayCustomer
from checkout.models.gateway_notification import GatewayNotification
from checkout.models.order_status import OrderPaymentStatus, OrderServiceAttribute

__all__ = [
    "CheckoutSession",
    "GatewayCustomer",
    "GatewayNotification",
    "OrderPaymentStatus",
    "OrderServiceAttribute",
]
