"""
Customer reference store.

Keeps the gateway customer reference (e.g., Stripe 'cus_xxx') of each
platform user so a profile is created at most once per user and gateway.
Reads go through the Django cache; GatewayCustomer rows are the source
of truth. References never expire.

Concurrency:
    Two checkouts of the same user may both miss and both create a
    profile at the gateway. The store upserts, so the last writer wins;
    the redundant gateway profile is logged and otherwise harmless.

Usage:
    from checkout.customers import CustomerRefStore

    ref = CustomerRefStore.get(user_id="42", gateway="stripe")
    if ref is None:
        ref = CustomerRefStore.resolve(gateway, order)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.cache import cache

from checkout.models import GatewayCustomer

if TYPE_CHECKING:
    from checkout.gateways.base import PaymentGateway, PaymentOrder

logger = logging.getLogger(__name__)

CUSTOMER_CACHE_PREFIX = "checkout:customer"


class CustomerRefStore:
    """Read-through cache of gateway customer references per user."""

    @classmethod
    def _get_cache_key(cls, user_id: str, gateway: str) -> str:
        return f"{CUSTOMER_CACHE_PREFIX}:{gateway}:{user_id}"

    @classmethod
    def get(cls, user_id: str, gateway: str) -> str | None:
        """
        Return the stored customer reference, or None.

        Checks the cache first, then the database, and fills the cache
        on a database hit.
        """
        cache_key = cls._get_cache_key(user_id, gateway)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        customer_ref = (
            GatewayCustomer.objects.filter(user_id=str(user_id), gateway=gateway)
            .values_list("customer_ref", flat=True)
            .first()
        )
        if customer_ref:
            cache.set(cache_key, customer_ref, timeout=None)
        return customer_ref

    @classmethod
    def store(cls, user_id: str, gateway: str, customer_ref: str) -> None:
        """
        Store a customer reference for a user (last writer wins).

        A different reference already stored means a concurrent checkout
        created a second profile at the gateway; it is replaced and logged.
        """
        previous = (
            GatewayCustomer.objects.filter(user_id=str(user_id), gateway=gateway)
            .values_list("customer_ref", flat=True)
            .first()
        )
        if previous and previous != customer_ref:
            logger.warning(
                "Replacing gateway customer reference written concurrently",
                extra={
                    "user_id": user_id,
                    "gateway": gateway,
                    "previous_customer_ref": previous,
                    "customer_ref": customer_ref,
                },
            )

        GatewayCustomer.objects.update_or_create(
            user_id=str(user_id),
            gateway=gateway,
            defaults={"customer_ref": customer_ref},
        )
        cache.set(cls._get_cache_key(user_id, gateway), customer_ref, timeout=None)

    @classmethod
    def resolve(cls, gateway: PaymentGateway, order: PaymentOrder) -> str | None:
        """
        Return the user's customer reference, creating one at the gateway
        if none is stored.

        Returns None for guest orders and for gateways that don't keep
        customer profiles.
        """
        if not order.user_id:
            return None

        customer_ref = cls.get(order.user_id, gateway.code)
        if customer_ref:
            return customer_ref

        customer_ref = gateway.create_customer(order)
        if not customer_ref:
            return None

        cls.store(order.user_id, gateway.code, customer_ref)
        logger.info(
            "Gateway customer created",
            extra={
                "user_id": order.user_id,
                "gateway": gateway.code,
                "customer_ref": customer_ref,
            },
        )
        return customer_ref
