"""
Tests for the order snapshot builder.
"""

from decimal import Decimal

import pytest

from checkout.exceptions import InvalidBasketError
from checkout.snapshot import Basket, build_snapshot, to_minor_units
from checkout.state_machines import LineItemType
from checkout.tests.factories import BasketFactory, BasketProductFactory, DeliveryServiceFactory


class TestShipping:
    def test_zero_cost_shipping_is_omitted(self):
        basket = BasketFactory(delivery=DeliveryServiceFactory(costs=Decimal("0.00")))

        snapshot = build_snapshot(basket)

        assert snapshot.shipping_item is None
        assert all(item.item_type == LineItemType.GOODS for item in snapshot.line_items)
        assert snapshot.total_amount == Decimal("30.00")

    def test_non_zero_shipping_is_added_once(self):
        snapshot = build_snapshot(BasketFactory())

        shipping = [i for i in snapshot.line_items if i.item_type == LineItemType.SHIPPING]
        assert len(shipping) == 1
        assert shipping[0].unit_price == Decimal("4.90")
        assert shipping[0].quantity == 1
        assert snapshot.total_amount == Decimal("34.90")

    @pytest.mark.parametrize("costs", ["0.01", "4.90", "19.99", "250"])
    def test_total_is_goods_plus_shipping(self, costs):
        basket = BasketFactory(delivery=DeliveryServiceFactory(costs=costs))

        snapshot = build_snapshot(basket)

        goods_sum = sum((item.total for item in snapshot.goods_items), Decimal("0"))
        assert snapshot.total_amount == goods_sum + Decimal(costs)
        assert snapshot.shipping_item.unit_price == Decimal(costs)

    def test_shipping_line_comes_last(self):
        snapshot = build_snapshot(BasketFactory())

        assert snapshot.line_items[-1].item_type == LineItemType.SHIPPING
        assert [i.id for i in snapshot.line_items] == ["mug", "card", "dhl"]

    def test_no_delivery(self):
        snapshot = build_snapshot(BasketFactory(delivery=None))

        assert snapshot.shipping_item is None
        assert snapshot.total_amount == Decimal("30.00")


class TestTaxRate:
    @pytest.mark.parametrize(
        "tax_rate,expected",
        [
            ("19.9", 19),
            (Decimal("19.99"), 19),
            ("7.5", 7),
            (19, 19),
            ("0", 0),
        ],
    )
    def test_tax_rate_is_truncated(self, tax_rate, expected):
        basket = BasketFactory(products=[BasketProductFactory(tax_rate=tax_rate)], delivery=None)

        snapshot = build_snapshot(basket)

        assert snapshot.line_items[0].tax_rate_percent == expected

    def test_shipping_tax_rate_is_truncated(self):
        basket = BasketFactory(delivery=DeliveryServiceFactory(tax_rate="19.9"))

        assert build_snapshot(basket).shipping_item.tax_rate_percent == 19

    def test_invalid_tax_rate(self):
        basket = BasketFactory(products=[BasketProductFactory(tax_rate="abc")])

        with pytest.raises(InvalidBasketError) as exc_info:
            build_snapshot(basket)

        assert exc_info.value.details["field"] == "tax_rate"


class TestValidation:
    @pytest.mark.parametrize("quantity", [0, -1, "0", "two", 1.5, None, True])
    def test_invalid_quantity(self, quantity):
        basket = BasketFactory(products=[BasketProductFactory(quantity=quantity)])

        with pytest.raises(InvalidBasketError) as exc_info:
            build_snapshot(basket)

        assert exc_info.value.details["field"] == "quantity"
        assert exc_info.value.details["line"] == 0

    @pytest.mark.parametrize("price", ["-0.01", "abc", "NaN", "Infinity", None])
    def test_invalid_price(self, price):
        basket = BasketFactory(products=[BasketProductFactory(price=price)])

        with pytest.raises(InvalidBasketError) as exc_info:
            build_snapshot(basket)

        assert exc_info.value.details["field"] == "price"

    def test_negative_shipping_cost(self):
        basket = BasketFactory(delivery=DeliveryServiceFactory(costs="-4.90"))

        with pytest.raises(InvalidBasketError) as exc_info:
            build_snapshot(basket)

        assert exc_info.value.details["field"] == "costs"

    def test_error_points_at_the_bad_line(self):
        basket = BasketFactory(
            products=[
                BasketProductFactory(),
                BasketProductFactory(quantity=-3),
            ]
        )

        with pytest.raises(InvalidBasketError) as exc_info:
            build_snapshot(basket)

        assert exc_info.value.details["line"] == 1

    def test_currency_is_required(self):
        with pytest.raises(InvalidBasketError):
            build_snapshot(Basket(currency=""))

    def test_string_values_are_accepted(self):
        basket = BasketFactory(
            products=[BasketProductFactory(quantity="3", price="1.10", tax_rate="19")],
            delivery=None,
        )

        snapshot = build_snapshot(basket)

        assert snapshot.line_items[0].quantity == 3
        assert snapshot.total_amount == Decimal("3.30")


class TestSnapshot:
    def test_currency_is_upper_cased(self):
        snapshot = build_snapshot(BasketFactory(currency="eur"))

        assert snapshot.currency == "EUR"

    def test_snapshot_is_immutable(self):
        snapshot = build_snapshot(BasketFactory())

        with pytest.raises(AttributeError):
            snapshot.total_amount = Decimal("0")

    def test_basket_is_not_modified(self):
        basket = BasketFactory()
        products_before = list(basket.products)

        build_snapshot(basket)

        assert basket.products == products_before

    def test_total_minor_units(self):
        assert build_snapshot(BasketFactory()).total_minor_units == 3490

    @pytest.mark.parametrize(
        "amount,currency,expected",
        [
            (Decimal("49.99"), "EUR", 4999),
            (Decimal("0.005"), "EUR", 1),
            (Decimal("500"), "JPY", 500),
            (Decimal("10"), "usd", 1000),
        ],
    )
    def test_to_minor_units(self, amount, currency, expected):
        assert to_minor_units(amount, currency) == expected
