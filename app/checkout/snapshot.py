"""
Order snapshot builder.

Turns a platform basket into an immutable, gateway-agnostic view of the
order at the time of payment. Gateways only ever see OrderSnapshot
instances; they never read the basket.

Rules:
    - Quantities must be positive integers
    - Prices and delivery costs must be finite, non-negative decimals
    - Tax rates must be finite decimals and are truncated, never rounded
      (19.9 becomes 19)
    - Delivery becomes a synthetic SHIPPING line only when its cost is
      non-zero
    - total_amount is the goods sum plus the non-zero delivery cost,
      counted exactly once

Usage:
    from checkout.snapshot import Basket, BasketProduct, DeliveryService, build_snapshot

    basket = Basket(
        order_id="1001",
        currency="EUR",
        products=[BasketProduct(code="sku-1", name="Mug", quantity=2, price="12.50", tax_rate="19")],
        delivery=DeliveryService(id="dhl", name="DHL", costs="4.90", tax_rate="19"),
    )
    snapshot = build_snapshot(basket)
    snapshot.total_amount   # Decimal("29.90")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from checkout.exceptions import InvalidBasketError
from checkout.state_machines import LineItemType

logger = logging.getLogger(__name__)

# ISO 4217 currencies without minor units
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)


# =============================================================================
# Basket Input Types
# =============================================================================


@dataclass
class BasketProduct:
    """
    One product position of the platform basket.

    price and tax_rate may be given as str, int or Decimal; they are
    validated by build_snapshot().
    """

    code: str
    name: str
    quantity: Any
    price: Any
    tax_rate: Any = 0


@dataclass
class DeliveryService:
    """Delivery service selected for the basket."""

    id: str
    name: str
    costs: Any = 0
    tax_rate: Any = 0


@dataclass
class Basket:
    """
    Minimal basket view the checkout needs.

    Attributes:
        currency: ISO 4217 code
        products: Ordered product positions
        delivery: Selected delivery service, if any
        order_id: Platform order identifier, if already assigned
    """

    currency: str
    products: list[BasketProduct] = field(default_factory=list)
    delivery: DeliveryService | None = None
    order_id: str | None = None


# =============================================================================
# Snapshot Types
# =============================================================================


@dataclass(frozen=True)
class LineItem:
    """A single immutable line of an OrderSnapshot."""

    id: str
    name: str
    item_type: str
    quantity: int
    unit_price: Decimal
    tax_rate_percent: int

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderSnapshot:
    """
    Immutable view of an order at the time of payment.

    Built fresh for every payment attempt and never mutated.

    Attributes:
        line_items: Goods lines in basket order, then the shipping line if any
        total_amount: Goods sum plus non-zero shipping cost
        currency: ISO 4217 code (upper case)
        order_id: Platform order identifier, if known
    """

    line_items: tuple[LineItem, ...]
    total_amount: Decimal
    currency: str
    order_id: str | None = None

    @property
    def goods_items(self) -> tuple[LineItem, ...]:
        return tuple(i for i in self.line_items if i.item_type == LineItemType.GOODS)

    @property
    def shipping_item(self) -> LineItem | None:
        for item in self.line_items:
            if item.item_type == LineItemType.SHIPPING:
                return item
        return None

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total_amount, self.currency)


# =============================================================================
# Helpers
# =============================================================================


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convert a decimal amount to the smallest currency unit.

    Example:
        to_minor_units(Decimal("49.99"), "EUR")  # 4999
        to_minor_units(Decimal("500"), "JPY")    # 500
    """
    exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
    quantum = Decimal(1).scaleb(-exponent)
    scaled = amount.quantize(quantum, rounding=ROUND_HALF_UP).scaleb(exponent)
    return int(scaled)


def _parse_decimal(value: Any, line: int, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidBasketError(
            f"{field_name} is not a valid decimal",
            details={"line": line, "field": field_name, "value": repr(value)},
        )
    try:
        if isinstance(value, Decimal):
            parsed = value
        elif isinstance(value, float):
            parsed = Decimal(str(value))
        else:
            parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidBasketError(
            f"{field_name} is not a valid decimal",
            details={"line": line, "field": field_name, "value": repr(value)},
        ) from None

    if not parsed.is_finite():
        raise InvalidBasketError(
            f"{field_name} must be finite",
            details={"line": line, "field": field_name, "value": repr(value)},
        )
    return parsed


def _parse_amount(value: Any, line: int, field_name: str) -> Decimal:
    amount = _parse_decimal(value, line, field_name)
    if amount < 0:
        raise InvalidBasketError(
            f"{field_name} must not be negative",
            details={"line": line, "field": field_name, "value": str(amount)},
        )
    return amount


def _parse_tax_rate(value: Any, line: int) -> int:
    # int() on a Decimal truncates toward zero
    return int(_parse_decimal(value, line, "tax_rate"))


def _parse_quantity(value: Any, line: int) -> int:
    quantity = None
    if isinstance(value, int) and not isinstance(value, bool):
        quantity = value
    elif isinstance(value, str) and value.strip().isdigit():
        quantity = int(value.strip())

    if quantity is None or quantity <= 0:
        raise InvalidBasketError(
            "Quantity must be a positive integer",
            details={"line": line, "field": "quantity", "value": repr(value)},
        )
    return quantity


# =============================================================================
# Builder
# =============================================================================


def build_snapshot(basket: Basket) -> OrderSnapshot:
    """
    Build an OrderSnapshot from a basket.

    Pure function: the basket is not modified and nothing is persisted.

    Args:
        basket: Platform basket adapted into a Basket

    Returns:
        OrderSnapshot with goods lines, optional shipping line and total

    Raises:
        InvalidBasketError: If any position or the delivery cost is malformed
    """
    if not basket.currency:
        raise InvalidBasketError(
            "Basket currency is required",
            details={"field": "currency"},
        )

    items: list[LineItem] = []
    goods_total = Decimal("0")

    for index, product in enumerate(basket.products):
        item = LineItem(
            id=str(product.code),
            name=product.name,
            item_type=LineItemType.GOODS,
            quantity=_parse_quantity(product.quantity, index),
            unit_price=_parse_amount(product.price, index, "price"),
            tax_rate_percent=_parse_tax_rate(product.tax_rate, index),
        )
        goods_total += item.total
        items.append(item)

    total = goods_total
    delivery = basket.delivery
    if delivery is not None:
        line = len(basket.products)
        costs = _parse_amount(delivery.costs, line, "costs")
        tax_rate = _parse_tax_rate(delivery.tax_rate, line)
        if costs != 0:
            items.append(
                LineItem(
                    id=str(delivery.id),
                    name=delivery.name,
                    item_type=LineItemType.SHIPPING,
                    quantity=1,
                    unit_price=costs,
                    tax_rate_percent=tax_rate,
                )
            )
            total += costs

    snapshot = OrderSnapshot(
        line_items=tuple(items),
        total_amount=total,
        currency=basket.currency.upper(),
        order_id=basket.order_id,
    )

    logger.debug(
        "Order snapshot built",
        extra={
            "order_id": basket.order_id,
            "line_count": len(items),
            "total_amount": str(total),
            "currency": snapshot.currency,
        },
    )
    return snapshot
