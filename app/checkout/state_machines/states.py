"""
State enums for checkout models.

This module defines the state enums used by the checkout app. They are
Django TextChoices for database storage and admin integration.

State Machines Overview:

OrderPaymentState (forward-only, owned by the Order Status Sink):
    pending → authorized → received
    pending → received / refused / canceled
    authorized → refused / canceled

CheckoutSession States (django-fsm):
    form_pending → token_collected → confirmed | refused
    form_pending / token_collected → expired
    confirmed → refused (reconciled refusal of an authorized payment)
"""

from django.db import models


class OrderPaymentState(models.TextChoices):
    """
    Payment state attached to an order.

    Terminal states: RECEIVED, REFUSED, CANCELED

    State Flow:
        PENDING → AUTHORIZED → RECEIVED
        PENDING → RECEIVED (immediate capture)
        PENDING / AUTHORIZED → REFUSED
        PENDING / AUTHORIZED → CANCELED
    """

    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    RECEIVED = "received", "Received"
    REFUSED = "refused", "Refused"
    CANCELED = "canceled", "Canceled"


TERMINAL_PAYMENT_STATES = frozenset(
    {
        OrderPaymentState.RECEIVED,
        OrderPaymentState.REFUSED,
        OrderPaymentState.CANCELED,
    }
)

ALLOWED_PAYMENT_TRANSITIONS = {
    OrderPaymentState.PENDING: frozenset(
        {
            OrderPaymentState.AUTHORIZED,
            OrderPaymentState.RECEIVED,
            OrderPaymentState.REFUSED,
            OrderPaymentState.CANCELED,
        }
    ),
    OrderPaymentState.AUTHORIZED: frozenset(
        {
            OrderPaymentState.RECEIVED,
            OrderPaymentState.REFUSED,
            OrderPaymentState.CANCELED,
        }
    ),
    OrderPaymentState.RECEIVED: frozenset(),
    OrderPaymentState.REFUSED: frozenset(),
    OrderPaymentState.CANCELED: frozenset(),
}


def is_terminal(state: str) -> bool:
    """Return True if no further payment transition is possible from state."""
    return state in TERMINAL_PAYMENT_STATES


def can_transition(current: str, target: str) -> bool:
    """
    Check whether the order payment state may move from current to target.

    Staying in the same state is not a transition and returns False.
    """
    return target in ALLOWED_PAYMENT_TRANSITIONS.get(current, frozenset())


class CheckoutSessionState(models.TextChoices):
    """
    States for the CheckoutSession handshake.

    Terminal states: CONFIRMED (may still be refused by reconcile),
    REFUSED, EXPIRED

    State Flow:
        FORM_PENDING → TOKEN_COLLECTED → CONFIRMED
        FORM_PENDING → TOKEN_COLLECTED → REFUSED
        FORM_PENDING / TOKEN_COLLECTED → EXPIRED (timeout)
        CONFIRMED → REFUSED (reconcile)
    """

    FORM_PENDING = "form_pending", "Form Pending"
    TOKEN_COLLECTED = "token_collected", "Token Collected"
    CONFIRMED = "confirmed", "Confirmed"
    REFUSED = "refused", "Refused"
    EXPIRED = "expired", "Expired"


class NotificationStatus(models.TextChoices):
    """
    Processing status for GatewayNotification.

    Tracks the lifecycle of notification processing for idempotency.

    State Flow:
        RECEIVED → PROCESSED
        RECEIVED → IGNORED (stale or no-op)
    """

    RECEIVED = "received", "Received"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"


class LineItemType(models.TextChoices):
    """
    Kind of line item in an order snapshot.

    - GOODS: A basket product
    - SHIPPING: Synthetic line for a non-zero delivery cost
    - OTHER: Anything else (fees, handling)
    """

    GOODS = "goods", "Goods"
    SHIPPING = "shipping", "Shipping"
    OTHER = "other", "Other"


__all__ = [
    "OrderPaymentState",
    "CheckoutSessionState",
    "NotificationStatus",
    "LineItemType",
    "TERMINAL_PAYMENT_STATES",
    "ALLOWED_PAYMENT_TRANSITIONS",
    "is_terminal",
    "can_transition",
]
