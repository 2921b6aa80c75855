"""Coupon registry factory.

Provides get_registry() / set_registry() to swap implementations. The
in-memory registry is the default; a hosted registry is plugged in with
set_registry() at application start-up.
"""

from shopping.coupon.fake_registry import InMemoryCouponRegistry
from shopping.coupon.port import CouponRegistry

_current_registry: CouponRegistry | None = None


def get_registry() -> CouponRegistry:
    """Return the current coupon registry. Defaults to InMemoryCouponRegistry."""
    global _current_registry
    if _current_registry is None:
        _current_registry = InMemoryCouponRegistry()
    return _current_registry


def set_registry(registry: CouponRegistry) -> None:
    """Override the active coupon registry (useful for tests)."""
    global _current_registry
    _current_registry = registry


def reset_registry() -> None:
    """Reset to the default registry."""
    global _current_registry
    _current_registry = None
