"""
Order status storage backing the default Order Status Sink.

The checkout never owns the platform's orders. These two tables hold
what the DjangoOrderStatusSink is asked to persist: the payment state
of each order and its service-attribute bag (intent and transaction
references, notification sequence).
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel

from checkout.state_machines import OrderPaymentState


class OrderPaymentStatus(BaseModel):
    """
    Current payment state of a platform order.

    Fields:
        order_id: Platform order identifier (unique)
        state: Current OrderPaymentState
    """

    order_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Platform order identifier",
    )

    state = models.CharField(
        max_length=20,
        choices=OrderPaymentState.choices,
        default=OrderPaymentState.PENDING,
        db_index=True,
        help_text="Current payment state of the order",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order Payment Status"
        verbose_name_plural = "Order Payment Statuses"

    def __str__(self) -> str:
        return f"OrderPaymentStatus({self.order_id}, {self.state})"


class OrderServiceAttribute(BaseModel):
    """
    One key/value entry of an order's service-attribute bag.

    Keys are namespaced by gateway code, e.g. 'stripe.intent_ref'.
    """

    order_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Platform order identifier",
    )

    key = models.CharField(
        max_length=100,
        help_text="Attribute key, namespaced by gateway",
    )

    value = models.TextField(
        blank=True,
        default="",
        help_text="Attribute value",
    )

    class Meta:
        ordering = ["order_id", "key"]
        verbose_name = "Order Service Attribute"
        verbose_name_plural = "Order Service Attributes"
        constraints = [
            models.UniqueConstraint(
                fields=["order_id", "key"],
                name="order_service_attribute_unique_key",
            ),
        ]

    def __str__(self) -> str:
        return f"OrderServiceAttribute({self.order_id}, {self.key})"
