"""
State machine enums and helpers for checkout models.

This module defines the state enums used by checkout models with django-fsm
and the forward-only rules of the order payment state.
"""

from checkout.state_machines.states import (
    ALLOWED_PAYMENT_TRANSITIONS,
    TERMINAL_PAYMENT_STATES,
    CheckoutSessionState,
    LineItemType,
    NotificationStatus,
    OrderPaymentState,
    can_transition,
    is_terminal,
)

__all__ = [
    "ALLOWED_PAYMENT_TRANSITIONS",
    "TERMINAL_PAYMENT_STATES",
    "CheckoutSessionState",
    "LineItemType",
    "NotificationStatus",
    "OrderPaymentState",
    "can_transition",
    "is_terminal",
]
