"""
GatewayCustomer model storing gateway customer references per user.

A customer reference (e.g., Stripe 'cus_xxx') is created at most once per
user per gateway and reused for every later checkout. Rows never expire.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class GatewayCustomer(UUIDPrimaryKeyMixin, BaseModel):
    """
    Gateway customer profile reference of a platform user.

    Fields:
        user_id: Platform user identifier
        gateway: Gateway code
        customer_ref: Gateway-issued customer reference
    """

    user_id = models.CharField(
        max_length=64,
        help_text="Platform user identifier",
    )

    gateway = models.CharField(
        max_length=32,
        help_text="Gateway code",
    )

    customer_ref = models.CharField(
        max_length=255,
        help_text="Gateway customer reference (e.g., cus_xxx)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Gateway Customer"
        verbose_name_plural = "Gateway Customers"
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "gateway"],
                name="gateway_customer_one_per_user_gateway",
            ),
        ]

    def __str__(self) -> str:
        return f"GatewayCustomer({self.user_id}, {self.gateway}, {self.customer_ref})"
