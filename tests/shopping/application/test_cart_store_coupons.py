"""Tests for applying and removing coupons through the cart store."""

import asyncio

import pytest
from shopping.cart.cart import Cart
from shopping.cart.errors import CouponError
from shopping.cart.store import CartStore
from shopping.coupon.fake_registry import InMemoryCouponRegistry
from shopping.coupon.validator import CouponValidator


@pytest.fixture()
def store(validator, home_jersey):
    store = CartStore(cart=Cart.create(session_id="sess-001"), validator=validator)
    store.add_item(home_jersey, "M", quantity=2)
    return store


@pytest.fixture()
def slow_store(coupon_rules, home_jersey):
    validator = CouponValidator(InMemoryCouponRegistry(coupon_rules, delay=0.05))
    store = CartStore(cart=Cart.create(session_id="sess-001"), validator=validator)
    store.add_item(home_jersey, "M", quantity=2)
    return store


class TestApplyCoupon:
    def test_apply_percentage_coupon(self, store):
        result = asyncio.run(store.apply_coupon("SAVE10"))
        assert result.success is True
        assert store.coupon.code == "SAVE10"
        assert store.discount_amount == 17.98
        assert store.total_price == 181.82

    def test_apply_flat_coupon(self, store):
        result = asyncio.run(store.apply_coupon("minus20"))
        assert result.success is True
        assert result.totals.discount_amount == 20.0
        assert result.totals.total_price == 179.80

    def test_new_coupon_replaces_old(self, store):
        asyncio.run(store.apply_coupon("MINUS20"))
        asyncio.run(store.apply_coupon("SAVE10"))
        assert store.coupon.code == "SAVE10"

    @pytest.mark.parametrize(
        "code, error",
        [("NOPE", CouponError.NOT_FOUND), ("PAUSED", CouponError.INACTIVE), ("LASTSEASON", CouponError.EXPIRED)],
    )
    def test_rejected_coupon_leaves_cart_unchanged(self, store, code, error):
        asyncio.run(store.apply_coupon("MINUS20"))
        result = asyncio.run(store.apply_coupon(code))
        assert result.success is False
        assert result.error == error
        assert store.coupon.code == "MINUS20"
        assert store.discount_amount == 20.0

    def test_already_applied(self, store):
        asyncio.run(store.apply_coupon("MINUS20"))
        result = asyncio.run(store.apply_coupon("MINUS20"))
        assert result.error == CouponError.ALREADY_APPLIED

    def test_listeners_notified_on_success_only(self, store):
        received = []
        store.subscribe(received.append)
        asyncio.run(store.apply_coupon("NOPE"))
        asyncio.run(store.apply_coupon("MINUS20"))
        assert len(received) == 1
        assert received[0].discount_amount == 20.0

    def test_remove_coupon(self, store):
        asyncio.run(store.apply_coupon("MINUS20"))
        result = store.remove_coupon()
        assert result.success is True
        assert store.coupon is None
        assert store.discount_amount == 0.0

    def test_remove_coupon_without_coupon(self, store):
        assert store.remove_coupon().success is True


class TestValidationInFlight:
    def test_flag_is_set_while_validating(self, slow_store):
        async def scenario():
            task = asyncio.create_task(slow_store.apply_coupon("SAVE10"))
            await asyncio.sleep(0)
            in_flight = slow_store.is_validating_coupon
            await task
            return in_flight

        assert asyncio.run(scenario()) is True
        assert slow_store.is_validating_coupon is False

    def test_second_apply_is_refused_while_first_is_pending(self, slow_store):
        async def scenario():
            first = asyncio.create_task(slow_store.apply_coupon("SAVE10"))
            await asyncio.sleep(0)
            second = await slow_store.apply_coupon("MINUS20")
            return await first, second

        first, second = asyncio.run(scenario())
        assert first.success is True
        assert second.error == CouponError.BUSY
        assert slow_store.coupon.code == "SAVE10"

    def test_timeout_leaves_cart_unchanged(self, slow_store):
        result = asyncio.run(slow_store.apply_coupon("SAVE10", timeout=0.001))
        assert result.error == CouponError.VALIDATION_TIMEOUT
        assert slow_store.coupon is None
        assert slow_store.is_validating_coupon is False


class TestDiscountAfterCartChanges:
    def test_percentage_discount_is_frozen_at_apply_time(self, store, home_jersey):
        asyncio.run(store.apply_coupon("SAVE10"))
        store.add_item(home_jersey, "M")
        assert store.subtotal == 269.70
        assert store.discount_amount == 17.98

    def test_fixed_discount_is_capped_at_subtotal(self, store):
        asyncio.run(store.apply_coupon("BIGSPENDER"))
        assert store.discount_amount == 179.80
        assert store.total_price == 20.0
