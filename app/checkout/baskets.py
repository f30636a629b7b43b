"""
Basket loading for the checkout endpoints.

The checkout never trusts amounts posted by the client. The process
endpoint asks a basket loader (CHECKOUT_BASKET_LOADER) for the order and
its basket, then builds the OrderSnapshot from that.

The default loader reads baskets the platform cached when the order was
placed:

    from checkout.baskets import cache_basket

    cache_basket(
        PaymentOrder(id="1001", user_id=str(user.pk), customer_email=user.email),
        Basket(currency="EUR", products=[...], delivery=DeliveryService(...)),
    )

A loader is any callable taking (order_id, user) and returning a
(PaymentOrder, Basket) tuple, raising NotFoundError when the order is
unknown or belongs to someone else.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from django.conf import settings
from django.core.cache import cache
from django.utils.module_loading import import_string

from core.exceptions import NotFoundError

if TYPE_CHECKING:
    from checkout.gateways.base import PaymentOrder
    from checkout.snapshot import Basket

logger = logging.getLogger(__name__)

BasketLoader = Callable[[str, Any], "tuple[PaymentOrder, Basket]"]

DEFAULT_BASKET_TIMEOUT = 60 * 60 * 24


def _get_cache_key(order_id: str) -> str:
    return f"checkout:basket:{order_id}"


def cache_basket(order: PaymentOrder, basket: Basket, timeout: int | None = None) -> None:
    """Store an order and its basket for the default loader."""
    if timeout is None:
        timeout = getattr(settings, "CHECKOUT_BASKET_CACHE_TIMEOUT", DEFAULT_BASKET_TIMEOUT)
    cache.set(_get_cache_key(order.id), (order, basket), timeout=timeout)
    logger.debug("Cached basket", extra={"order_id": order.id})


def load_cached_basket(order_id: str, user: Any) -> tuple[PaymentOrder, Basket]:
    """
    Default basket loader backed by the Django cache.

    Raises:
        NotFoundError: No cached basket, or the order belongs to another user
    """
    entry = cache.get(_get_cache_key(order_id))
    if entry is None:
        raise NotFoundError(
            f"Order {order_id} not found",
            details={"order_id": order_id},
        )

    order, basket = entry
    if order.user_id is not None and order.user_id != str(getattr(user, "pk", "")):
        logger.warning(
            "Basket requested by a user who does not own the order",
            extra={"order_id": order_id},
        )
        raise NotFoundError(
            f"Order {order_id} not found",
            details={"order_id": order_id},
        )
    return order, basket


def get_basket_loader() -> BasketLoader:
    """Return the loader configured in CHECKOUT_BASKET_LOADER."""
    return import_string(
        getattr(settings, "CHECKOUT_BASKET_LOADER", "checkout.baskets.load_cached_basket")
    )
