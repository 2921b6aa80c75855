"""Coupon registry port (abstract interface).

The registry is the external catalogue of promotional codes. It resolves a
code to its rule; deciding whether that rule can be applied to a given cart
is the validator's job, not the registry's.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime

from shopping.cart.cart import CouponKind


@dataclass(frozen=True)
class CouponRule:
    """A promotional code as stored in the registry.

    ``value`` is an absolute amount for fixed coupons and a percent (0–100)
    for percentage coupons.
    """

    code: str
    kind: str
    value: float
    is_active: bool = True
    expires_at: datetime | None = None

    def __post_init__(self):
        if self.kind not in {kind.value for kind in CouponKind}:
            raise ValueError(f"Unknown coupon kind: {self.kind!r}")
        if self.value < 0:
            raise ValueError("Coupon value must be non-negative")
        if self.kind == CouponKind.PERCENTAGE.value and self.value > 100:
            raise ValueError("Percentage coupons cannot exceed 100%")

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
        return now > expires_at


class CouponRegistry(ABC):
    """Abstract coupon registry interface."""

    @abstractmethod
    async def lookup(self, code: str) -> CouponRule | None:
        """Return the rule registered under ``code`` (already normalised), or None."""
        ...
