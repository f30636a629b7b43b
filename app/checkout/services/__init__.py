"""
Checkout services.

Usage:
    from checkout.services import PaymentAdapter, Confirmation
"""

from checkout.services.payment_adapter import Confirmation, PaymentAdapter

__all__ = [
    "Confirmation",
    "PaymentAdapter",
]
