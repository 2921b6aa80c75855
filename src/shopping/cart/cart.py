"""Cart aggregate — the live shopping cart of one browsing session.

The cart owns an ordered list of lines and at most one applied coupon.
Every monetary figure the UI shows (subtotal, shipping, discount, total) is
a property derived from those two on each read, never a stored field, so the
totals cannot drift away from the lines.

A line is keyed by ``(product_id, size, customization)``: adding the same
combination again grows the existing line instead of creating a duplicate.
The customization surcharge is frozen on the line when it is created, so a
later change to the fee schedule never reprices what is already in the cart.
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import NAMESPACE_URL, uuid5

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from shopping.cart.errors import CapacityExceeded, LineNotFound
from shopping.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
    CartRestored,
)
from shopping.domain import shopping
from shopping.pricing.customization import customization_fee, normalize_customization
from shopping.pricing.money import to_money
from shopping.pricing.rules import get_rules
from shopping.pricing.shipping import shipping_price


class CouponKind(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


# ---------------------------------------------------------------------------
# Catalogue input
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ProductRecord:
    """An already-resolved catalogue product, as handed over by the product page."""

    product_id: str
    title: str
    base_price: float
    product_slug: str = ""
    image: str = ""
    team: str = ""
    sizes: tuple[str, ...] = field(default=())

    @classmethod
    def from_dict(cls, data: dict) -> "ProductRecord":
        """Accept both the storefront's camelCase keys and snake_case keys."""
        return cls(
            product_id=str(data.get("product_id") or data.get("productId") or data.get("id")),
            title=data["title"],
            base_price=float(data.get("base_price", data.get("basePrice", data.get("price")))),
            product_slug=data.get("product_slug") or data.get("productSlug") or data.get("slug") or "",
            image=data.get("image") or "",
            team=data.get("team") or "",
            sizes=tuple(data.get("sizes") or ()),
        )


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@shopping.value_object(part_of="Cart")
class Customization:
    """Personalization printed on a jersey: a name, a number, or both."""

    name = String(max_length=50)
    number = String(max_length=10)

    def to_record(self) -> dict:
        record = {}
        if self.name:
            record["name"] = self.name
        if self.number:
            record["number"] = self.number
        return record


@shopping.value_object(part_of="Cart")
class AppliedCoupon:
    """The cart's active coupon, resolved to an absolute amount when applied.

    Percentage coupons keep their percent for display only; the discount
    itself is not re-derived when the cart changes afterwards.
    """

    code = String(required=True, max_length=100)
    kind = String(required=True, choices=CouponKind)
    discount_amount = Float(required=True, min_value=0.0)
    discount_percent = Float(min_value=0.0, max_value=100.0)
    applied_at = DateTime()

    def to_record(self) -> dict:
        record = {
            "code": self.code,
            "kind": self.kind,
            "discountAmount": self.discount_amount,
            "appliedAt": self.applied_at.isoformat() if self.applied_at else None,
        }
        if self.discount_percent is not None:
            record["discountPercent"] = self.discount_percent
        return record

    @classmethod
    def from_record(cls, record: dict) -> "AppliedCoupon":
        applied_at = record.get("appliedAt")
        return cls(
            code=str(record["code"]).upper(),
            kind=record.get("kind", CouponKind.FIXED.value),
            discount_amount=float(record["discountAmount"]),
            discount_percent=record.get("discountPercent"),
            applied_at=datetime.fromisoformat(applied_at) if applied_at else None,
        )


@dataclass(frozen=True)
class CartTotals:
    """A consistent read of every derived cart figure at one instant."""

    cart_count: int
    base_subtotal: float
    total_customization_fee: float
    subtotal: float
    discount_amount: float
    shipping_price: float
    total_price: float

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@shopping.entity(part_of="Cart")
class CartLine:
    """One product/size/personalization combination and how many units of it."""

    product_id = Identifier(required=True)
    product_slug = String(max_length=255)
    title = String(required=True, max_length=255)
    image = String(max_length=1024)
    team = String(max_length=100)
    base_price = Float(required=True, min_value=0.0)
    size = String(required=True, max_length=10)
    quantity = Integer(required=True, min_value=1)
    customization = ValueObject(Customization)
    customization_fee = Float(default=0.0, min_value=0.0)

    @property
    def unit_price(self) -> float:
        return to_money(self.base_price + (self.customization_fee or 0.0))

    @property
    def line_total(self) -> float:
        return to_money(self.unit_price * self.quantity)

    def to_record(self) -> dict:
        """Serialize into the persisted cart-line shape."""
        record = {
            "id": str(self.id),
            "productId": str(self.product_id),
            "productSlug": self.product_slug or "",
            "title": self.title,
            "image": self.image or "",
            "team": self.team or "",
            "basePrice": self.base_price,
            "size": self.size,
            "quantity": self.quantity,
            "customizationFee": self.customization_fee or 0.0,
        }
        if self.customization is not None:
            record["customization"] = self.customization.to_record()
        return record

    @classmethod
    def from_record(cls, record: dict) -> "CartLine":
        """Rebuild a line from its persisted shape.

        The id is re-derived from the line key, so lines persisted by older
        clients (with random ids) load under their deterministic id.
        """
        if not isinstance(record, dict):
            raise ValidationError({"line": ["Cart line must be an object"]})

        customization = normalize_customization(record.get("customization"))
        product_id = str(record["productId"])
        size = str(record["size"])

        return cls(
            id=Cart.line_key(product_id, size, customization),
            product_id=product_id,
            product_slug=record.get("productSlug") or "",
            title=record["title"],
            image=record.get("image") or "",
            team=record.get("team") or "",
            base_price=float(record["basePrice"]),
            size=size,
            quantity=int(record["quantity"]),
            customization=Customization(**customization) if customization else None,
            customization_fee=float(record.get("customizationFee") or 0.0),
        )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@shopping.aggregate
class Cart:
    session_id = String(max_length=255)
    lines = HasMany(CartLine)
    coupon = ValueObject(AppliedCoupon)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def unit_count_must_not_exceed_capacity(self):
        max_units = get_rules().max_units
        if self.unit_count > max_units:
            raise CapacityExceeded({"quantity": [f"A cart holds at most {max_units} units"]})

    @invariant.post
    def line_keys_must_be_unique(self):
        ids = [str(line.id) for line in self.lines]
        if len(ids) != len(set(ids)):
            raise ValidationError({"lines": ["Each product, size and personalization may appear only once"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, session_id=None):
        now = datetime.now(UTC)
        return cls(session_id=session_id, created_at=now, updated_at=now)

    @staticmethod
    def line_key(product_id, size, customization=None) -> str:
        """Deterministic line id for a product/size/personalization combination."""
        customization = normalize_customization(customization) or {}
        key = "|".join(
            [
                str(product_id),
                str(size),
                customization.get("name", ""),
                customization.get("number", ""),
            ]
        )
        return str(uuid5(NAMESPACE_URL, f"cart-line:{key}"))

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def unit_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def base_subtotal(self) -> float:
        return to_money(sum(line.base_price * line.quantity for line in self.lines))

    @property
    def total_customization_fee(self) -> float:
        return to_money(sum((line.customization_fee or 0.0) * line.quantity for line in self.lines))

    @property
    def subtotal(self) -> float:
        return to_money(sum(line.unit_price * line.quantity for line in self.lines))

    @property
    def discount_amount(self) -> float:
        if self.coupon is None:
            return 0.0
        return to_money(min(self.coupon.discount_amount, self.subtotal))

    @property
    def shipping_price(self) -> float:
        return shipping_price(self.unit_count)

    @property
    def total_price(self) -> float:
        return to_money(max(0.0, self.subtotal - self.discount_amount) + self.shipping_price)

    def totals(self) -> CartTotals:
        return CartTotals(
            cart_count=self.unit_count,
            base_subtotal=self.base_subtotal,
            total_customization_fee=self.total_customization_fee,
            subtotal=self.subtotal,
            discount_amount=self.discount_amount,
            shipping_price=self.shipping_price,
            total_price=self.total_price,
        )

    def find_line(self, line_id):
        return next((line for line in self.lines if str(line.id) == str(line_id)), None)

    def _assert_capacity(self, new_unit_count):
        max_units = get_rules().max_units
        if new_unit_count > max_units:
            raise CapacityExceeded(
                {"quantity": [f"A cart holds at most {max_units} units, this change would make it {new_unit_count}"]}
            )

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product, size, quantity=1, customization=None):
        """Add ``quantity`` units of a product in ``size`` (or grow the matching line)."""
        if isinstance(product, dict):
            product = ProductRecord.from_dict(product)

        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be a whole number of at least 1"]})
        if not size:
            raise ValidationError({"size": ["A size must be chosen"]})
        if product.sizes and size not in product.sizes:
            raise ValidationError({"size": [f"Size {size} is not offered for {product.title}"]})

        normalized = normalize_customization(customization)
        line_id = self.line_key(product.product_id, size, normalized)
        existing = self.find_line(line_id)

        self._assert_capacity(self.unit_count + quantity)

        if existing:
            existing.quantity += quantity
            line = existing
        else:
            line = CartLine(
                id=line_id,
                product_id=product.product_id,
                product_slug=product.product_slug,
                title=product.title,
                image=product.image,
                team=product.team,
                base_price=product.base_price,
                size=size,
                quantity=quantity,
                customization=Customization(**normalized) if normalized else None,
                customization_fee=customization_fee(normalized),
            )
            self.add_lines(line)

        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                line_id=str(line.id),
                product_id=str(product.product_id),
                size=size,
                quantity=quantity,
                new_quantity=line.quantity,
                customization_fee=line.customization_fee,
            )
        )
        return line

    def update_quantity(self, line_id, new_quantity):
        """Set a line's quantity; anything below 1 removes the line."""
        if new_quantity < 1:
            self.remove_item(line_id)
            return None

        line = self.find_line(line_id)
        if line is None:
            raise LineNotFound({"line_id": ["Line not found in cart"]})

        self._assert_capacity(self.unit_count - line.quantity + new_quantity)

        previous_quantity = line.quantity
        line.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )
        return line

    def remove_item(self, line_id):
        """Remove a line. Removing a line that is not there is not an error."""
        line = self.find_line(line_id)
        if line is None:
            return False

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                line_id=str(line_id),
            )
        )
        return True

    def clear(self):
        """Empty the cart and drop its coupon, returning the prior state for undo."""
        previous_state = self.to_state()
        lines_removed = len(self.lines)

        with atomic_change(self):
            for line in list(self.lines):
                self.remove_lines(line)
            self.coupon = None

        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                lines_removed=lines_removed,
                cleared_at=now,
            )
        )
        return previous_state

    def restore(self, state):
        """Replace lines and coupon with a state captured by ``to_state``/``clear``."""
        lines = _lines_from_records(state.get("items") or [])
        coupon_record = state.get("coupon")
        coupon = AppliedCoupon.from_record(coupon_record) if coupon_record else None

        self._assert_capacity(sum(line.quantity for line in lines))

        with atomic_change(self):
            for line in list(self.lines):
                self.remove_lines(line)
            for line in lines:
                self.add_lines(line)
            self.coupon = coupon

        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartRestored(
                cart_id=str(self.id),
                lines_restored=len(lines),
            )
        )

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon):
        """Make ``coupon`` the active coupon, replacing any previous one."""
        self.coupon = coupon
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_code=coupon.code,
                discount_amount=coupon.discount_amount,
            )
        )

    def remove_coupon(self):
        """Drop the active coupon. Always succeeds."""
        if self.coupon is None:
            return

        code = self.coupon.code
        self.coupon = None
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCouponRemoved(
                cart_id=str(self.id),
                coupon_code=code,
            )
        )

    # -------------------------------------------------------------------
    # State capture
    # -------------------------------------------------------------------
    def to_state(self) -> dict:
        """Lines and coupon in their persisted shape. Derived totals are left out."""
        state = {"items": [line.to_record() for line in self.lines]}
        if self.coupon is not None:
            state["coupon"] = self.coupon.to_record()
        return state

    @classmethod
    def from_state(cls, state, session_id=None):
        """Rebuild a cart from ``to_state`` output (or a bare list of line records)."""
        if isinstance(state, list):
            state = {"items": state}
        if not isinstance(state, dict) or not isinstance(state.get("items", []), list):
            raise ValidationError({"cart": ["Cart state must hold a list of lines"]})

        coupon_record = state.get("coupon")
        if coupon_record is not None and not isinstance(coupon_record, dict):
            raise ValidationError({"coupon": ["Coupon must be an object"]})

        now = datetime.now(UTC)
        cart = cls(
            session_id=session_id,
            lines=_lines_from_records(state.get("items") or []),
            coupon=AppliedCoupon.from_record(coupon_record) if coupon_record else None,
            created_at=now,
            updated_at=now,
        )
        cart._assert_capacity(cart.unit_count)
        return cart


def _lines_from_records(records):
    """Build lines from records, folding records that share a line key into one line."""
    lines = {}
    for record in records:
        line = CartLine.from_record(record)
        existing = lines.get(str(line.id))
        if existing:
            existing.quantity += line.quantity
        else:
            lines[str(line.id)] = line
    return list(lines.values())
