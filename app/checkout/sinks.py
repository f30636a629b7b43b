"""
Order Status Sink: the persistence boundary for order payment data.

The payment adapter never touches order storage directly. Everything it
persists about an order (payment state, intent and transaction
references, last applied notification sequence) goes through an object
satisfying the OrderStatusSink protocol.

Available Implementations:
    DjangoOrderStatusSink: Stores state and attributes in checkout tables

The sink used by the HTTP endpoints is selected by the
CHECKOUT_ORDER_SINK setting (dotted path to a class taking no arguments).

Usage:
    from checkout.sinks import get_order_sink

    sink = get_order_sink()
    sink.set_payment_state("1001", OrderPaymentState.RECEIVED)
    sink.set_attribute("1001", "stripe.transaction_ref", "pi_123")
    sink.get_attribute("1001", "stripe.transaction_ref")  # "pi_123"
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from django.conf import settings
from django.utils.module_loading import import_string

from checkout.models import OrderPaymentStatus, OrderServiceAttribute
from checkout.state_machines import OrderPaymentState

logger = logging.getLogger(__name__)

DEFAULT_ORDER_SINK = "checkout.sinks.DjangoOrderStatusSink"


@runtime_checkable
class OrderStatusSink(Protocol):
    """
    Protocol for order status persistence.

    Example:
        class PlatformOrderSink:
            def set_payment_state(self, order_id, state): ...
            def get_payment_state(self, order_id): ...
            def set_attribute(self, order_id, key, value): ...
            def get_attribute(self, order_id, key): ...
    """

    def set_payment_state(self, order_id: str, state: str) -> None:
        """Persist the payment state of an order."""
        ...

    def get_payment_state(self, order_id: str) -> str:
        """
        Return the current payment state of an order.

        Orders never seen before are PENDING.
        """
        ...

    def set_attribute(self, order_id: str, key: str, value: str) -> None:
        """Store a value in the order's service-attribute bag."""
        ...

    def get_attribute(self, order_id: str, key: str) -> str | None:
        """Read a value from the order's service-attribute bag, or None."""
        ...


class DjangoOrderStatusSink:
    """
    OrderStatusSink backed by OrderPaymentStatus and OrderServiceAttribute.
    """

    def set_payment_state(self, order_id: str, state: str) -> None:
        OrderPaymentStatus.objects.update_or_create(
            order_id=str(order_id),
            defaults={"state": state},
        )
        logger.info(
            "Order payment state stored",
            extra={"order_id": order_id, "state": str(state)},
        )

    def get_payment_state(self, order_id: str) -> str:
        state = (
            OrderPaymentStatus.objects.filter(order_id=str(order_id))
            .values_list("state", flat=True)
            .first()
        )
        return state or OrderPaymentState.PENDING

    def set_attribute(self, order_id: str, key: str, value: str) -> None:
        OrderServiceAttribute.objects.update_or_create(
            order_id=str(order_id),
            key=key,
            defaults={"value": "" if value is None else str(value)},
        )

    def get_attribute(self, order_id: str, key: str) -> str | None:
        value = (
            OrderServiceAttribute.objects.filter(order_id=str(order_id), key=key)
            .values_list("value", flat=True)
            .first()
        )
        return value or None


def get_order_sink() -> OrderStatusSink:
    """Instantiate the sink configured by CHECKOUT_ORDER_SINK."""
    sink_class = import_string(getattr(settings, "CHECKOUT_ORDER_SINK", DEFAULT_ORDER_SINK))
    return sink_class()


__all__ = [
    "OrderStatusSink",
    "DjangoOrderStatusSink",
    "get_order_sink",
]
