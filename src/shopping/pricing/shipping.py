"""Shipping Tariff Table — shipping cost as a step function of unit count.

The unit count is the sum of all line quantities, not the number of distinct
lines: three units of one jersey ship exactly like three different jerseys.
One table serves both the cart page and the checkout page.
"""

from dataclasses import dataclass

from shopping.pricing.money import to_money
from shopping.pricing.rules import PricingRules, get_rules


@dataclass(frozen=True)
class ShippingQuote:
    """Shipping price for a unit count, with the label shown next to it."""

    unit_count: int
    price: float
    description: str
    is_free: bool


@dataclass(frozen=True)
class ShippingUpsell:
    """How many more units unlock free shipping, and what that saves."""

    units_needed: int
    new_price: float
    savings: float


def shipping_price(unit_count: int, rules: PricingRules | None = None) -> float:
    """Return the shipping cost for ``unit_count`` units.

    0 units ships for nothing (empty cart); every count at or above the
    free-shipping threshold ships free.
    """
    if unit_count < 0:
        raise ValueError(f"Unit count cannot be negative: {unit_count}")

    rules = rules or get_rules()
    if unit_count == 0 or unit_count >= rules.free_shipping_units:
        return 0.0
    return to_money(rules.shipping_steps[unit_count - 1])


def quote_shipping(unit_count: int, rules: PricingRules | None = None) -> ShippingQuote:
    rules = rules or get_rules()
    price = shipping_price(unit_count, rules)

    if unit_count == 0:
        description = "Empty cart"
        is_free = False
    elif unit_count >= rules.free_shipping_units:
        description = f"Free shipping for {rules.free_shipping_units}+ jerseys"
        is_free = True
    else:
        noun = "jersey" if unit_count == 1 else "jerseys"
        description = f"Shipping for {unit_count} {noun}"
        is_free = price == 0

    return ShippingQuote(unit_count=unit_count, price=price, description=description, is_free=is_free)


def next_shipping_discount(unit_count: int, rules: PricingRules | None = None) -> ShippingUpsell | None:
    """Return the free-shipping upsell for a cart of ``unit_count`` units.

    None for an empty cart and for carts that already ship free.
    """
    rules = rules or get_rules()
    if unit_count <= 0 or unit_count >= rules.free_shipping_units:
        return None

    current = shipping_price(unit_count, rules)
    return ShippingUpsell(
        units_needed=rules.free_shipping_units - unit_count,
        new_price=0.0,
        savings=current,
    )
