"""Shared BDD fixtures and step definitions for cart pricing."""

import asyncio

import pytest
from pytest_bdd import given, parsers, then, when
from shopping.cart.cart import Cart, ProductRecord
from shopping.cart.store import CartStore
from shopping.coupon.fake_registry import InMemoryCouponRegistry
from shopping.coupon.port import CouponRule
from shopping.coupon.validator import CouponValidator


@pytest.fixture()
def bdd_registry():
    return InMemoryCouponRegistry()


@pytest.fixture()
def outcome():
    """Container for the result of the last store operation."""
    return {"result": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="store")
def empty_cart(bdd_registry):
    return CartStore(cart=Cart.create(session_id="sess-bdd"), validator=CouponValidator(bdd_registry))


@given(parsers.cfparse('the coupon "{code}" grants a fixed discount of {amount:f}'))
def fixed_coupon(bdd_registry, code, amount):
    bdd_registry.add(CouponRule(code=code, kind="fixed", value=amount))


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
def _product(title, price):
    slug = title.lower().replace(" ", "-").replace("/", "-")
    return ProductRecord(product_id=f"prod-{slug}", title=title, base_price=price)


@when(parsers.cfparse('{quantity:d} "{title}" jersey priced {price:f} is added in size "{size:w}"'))
@when(parsers.cfparse('{quantity:d} "{title}" jerseys priced {price:f} are added in size "{size:w}"'))
def add_jerseys(store, outcome, quantity, title, price, size):
    outcome["result"] = store.add_item(_product(title, price), size, quantity=quantity)


@when(
    parsers.cfparse(
        '{quantity:d} "{title}" jersey priced {price:f} is added in size "{size:w}" with name "{name}" and number "{number}"'
    )
)
def add_personalized_jersey(store, outcome, quantity, title, price, size, name, number):
    outcome["result"] = store.add_item(
        _product(title, price), size, quantity=quantity, customization={"name": name, "number": number}
    )


@when(parsers.cfparse("the line quantity is changed to {quantity:d}"))
def change_quantity(store, outcome, quantity):
    outcome["result"] = store.update_quantity(store.lines[0].id, quantity)


@when(parsers.cfparse('the coupon "{code}" is applied'))
def apply_coupon(store, outcome, code):
    outcome["result"] = asyncio.run(store.apply_coupon(code))


@when("the cart is checked out")
def check_out(store, outcome, customer_info, shipping_address):
    outcome["result"] = store.checkout(customer_info, shipping_address)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the subtotal is {amount:f}"))
def subtotal_is(store, amount):
    assert store.subtotal == pytest.approx(amount)


@then(parsers.cfparse("the shipping price is {amount:f}"))
def shipping_is(store, amount):
    assert store.shipping_price == pytest.approx(amount)


@then(parsers.cfparse("the discount is {amount:f}"))
def discount_is(store, amount):
    assert store.discount_amount == pytest.approx(amount)


@then(parsers.cfparse("the total price is {amount:f}"))
def total_is(store, amount):
    assert store.total_price == pytest.approx(amount)


@then(parsers.cfparse("the cart holds {count:d} units"))
def cart_holds(store, count):
    assert store.cart_count == count


@then(parsers.cfparse('the change is refused with "{error}"'))
def change_refused(outcome, error):
    result = outcome["result"]
    assert result.success is False
    assert result.error.value == error


@then("no order snapshot is produced")
def no_snapshot(outcome):
    assert outcome["result"].snapshot is None
