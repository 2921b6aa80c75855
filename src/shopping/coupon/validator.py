"""Coupon Validator — decides whether a code can be applied to a cart, and for how much.

Validation never touches the cart: it returns a ``CouponValidation`` result
and leaves applying it (or rendering the error) to the caller. Every failure
path fails closed, so a coupon whose lookup did not complete is never applied.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from shopping.cart.cart import AppliedCoupon, CouponKind
from shopping.cart.errors import CouponError
from shopping.pricing.money import to_money

logger = structlog.get_logger(__name__)

_ERROR_MESSAGES = {
    CouponError.NOT_FOUND: "Invalid or unknown coupon code",
    CouponError.INACTIVE: "This coupon is no longer active",
    CouponError.EXPIRED: "This coupon has expired",
    CouponError.ALREADY_APPLIED: "This coupon is already applied to your cart",
    CouponError.VALIDATION_TIMEOUT: "Could not verify the coupon in time, please try again",
    CouponError.BUSY: "A coupon is already being verified",
}


@dataclass(frozen=True)
class CouponValidation:
    """Result of a coupon validation attempt."""

    success: bool
    code: str = ""
    coupon: AppliedCoupon | None = None
    error: CouponError | None = None
    message: str | None = None

    @classmethod
    def rejected(cls, code: str, error: CouponError) -> "CouponValidation":
        return cls(success=False, code=code, error=error, message=_ERROR_MESSAGES[error])


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


def resolve_discount(rule, subtotal: float) -> float:
    """Absolute discount a rule grants on ``subtotal``, never more than the subtotal itself."""
    if rule.kind == CouponKind.PERCENTAGE.value:
        amount = subtotal * rule.value / 100
    else:
        amount = rule.value
    return to_money(max(0.0, min(amount, subtotal)))


class CouponValidator:
    def __init__(self, registry=None, timeout: float | None = None) -> None:
        self._registry = registry
        self.timeout = timeout

    @property
    def registry(self):
        if self._registry is None:
            from shopping.coupon import get_registry

            return get_registry()
        return self._registry

    async def validate(self, code, cart, timeout: float | None = None) -> CouponValidation:
        """Validate ``code`` against ``cart``'s current subtotal.

        ``timeout`` (seconds) bounds the registry lookup; falls back to the
        validator's default timeout, and to no bound at all when both are None.
        """
        normalized = normalize_code(code)
        log = logger.bind(coupon_code=normalized, cart_id=str(cart.id))

        if not normalized:
            return CouponValidation.rejected(normalized, CouponError.NOT_FOUND)

        if cart.coupon is not None and cart.coupon.code == normalized:
            return CouponValidation.rejected(normalized, CouponError.ALREADY_APPLIED)

        timeout = timeout if timeout is not None else self.timeout
        try:
            rule = await asyncio.wait_for(self.registry.lookup(normalized), timeout)
        except TimeoutError:
            log.warning("coupon_validation_timed_out", timeout=timeout)
            return CouponValidation.rejected(normalized, CouponError.VALIDATION_TIMEOUT)
        except Exception:
            log.exception("coupon_lookup_failed")
            return CouponValidation.rejected(normalized, CouponError.NOT_FOUND)

        if rule is None:
            return CouponValidation.rejected(normalized, CouponError.NOT_FOUND)
        if not rule.is_active:
            return CouponValidation.rejected(normalized, CouponError.INACTIVE)
        if rule.is_expired():
            return CouponValidation.rejected(normalized, CouponError.EXPIRED)

        discount = resolve_discount(rule, cart.subtotal)
        coupon = AppliedCoupon(
            code=normalized,
            kind=rule.kind,
            discount_amount=discount,
            discount_percent=rule.value if rule.kind == CouponKind.PERCENTAGE.value else None,
            applied_at=datetime.now(UTC),
        )

        log.info("coupon_validated", kind=rule.kind, discount_amount=discount)
        return CouponValidation(success=True, code=normalized, coupon=coupon)
