"""
Tests for basket loading.
"""

import pytest

from core.exceptions import NotFoundError

from checkout.baskets import cache_basket, get_basket_loader, load_cached_basket
from checkout.tests.factories import BasketFactory, PaymentOrderFactory


def loader_stub(order_id, user):
    return PaymentOrderFactory(id=order_id), BasketFactory(order_id=order_id)


class TestLoadCachedBasket:
    def test_returns_cached_order_and_basket(self, user):
        order = PaymentOrderFactory(id="1001", user_id=str(user.pk))
        cache_basket(order, BasketFactory(order_id="1001"))

        loaded_order, loaded_basket = load_cached_basket("1001", user)

        assert loaded_order == order
        assert loaded_basket.order_id == "1001"
        assert loaded_basket.currency == "EUR"

    def test_missing_basket(self, user):
        with pytest.raises(NotFoundError):
            load_cached_basket("1001", user)

    def test_order_of_another_user(self, user):
        cache_basket(PaymentOrderFactory(id="1001", user_id="someone-else"), BasketFactory())

        with pytest.raises(NotFoundError):
            load_cached_basket("1001", user)

    def test_guest_order_is_open_to_the_caller(self, user):
        cache_basket(PaymentOrderFactory(id="1001", user_id=None), BasketFactory())

        order, _ = load_cached_basket("1001", user)

        assert order.user_id is None

    def test_expired_entry(self, user):
        cache_basket(PaymentOrderFactory(id="1001", user_id=str(user.pk)), BasketFactory(), timeout=-1)

        with pytest.raises(NotFoundError):
            load_cached_basket("1001", user)


class TestGetBasketLoader:
    def test_default(self):
        assert get_basket_loader() is load_cached_basket

    def test_configured_loader(self, settings):
        settings.CHECKOUT_BASKET_LOADER = "checkout.tests.test_baskets.loader_stub"

        order, basket = get_basket_loader()("2002", None)

        assert order.id == "2002"
        assert basket.order_id == "2002"
