"""Checkout Snapshot Builder — freezes the live cart into an order payload.

The snapshot is a value, not a view: lines are copied and the four totals
are read once, at the moment checkout is submitted. Whatever happens to the
cart afterwards, the snapshot keeps the figures the customer agreed to pay.
"""

import re
import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String

from shopping.cart.errors import EmptyCartError
from shopping.domain import shopping


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@shopping.value_object
class CustomerInfo:
    """Who is buying, as captured by the checkout customer form."""

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    email = String(required=True, max_length=254)
    phone = String(required=True, max_length=30)
    document = String(required=True, max_length=20)

    @invariant.post
    def email_must_look_like_an_address(self):
        email = self.email or ""
        if " " in email or email.count("@") != 1 or email.startswith("@") or email.endswith("@"):
            raise ValidationError({"email": [f"Invalid email address: {email!r}"]})

    @invariant.post
    def phone_must_have_area_code_and_number(self):
        if len(re.sub(r"\D", "", self.phone or "")) < 10:
            raise ValidationError({"phone": [f"Invalid phone number: {self.phone!r}"]})

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_record(self) -> dict:
        return {
            "name": self.name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "document": self.document,
        }

    @classmethod
    def from_record(cls, record: dict) -> "CustomerInfo":
        return cls(
            first_name=record.get("first_name") or record.get("firstName"),
            last_name=record.get("last_name") or record.get("lastName"),
            email=record.get("email"),
            phone=record.get("phone"),
            document=record.get("document"),
        )


@shopping.value_object
class ShippingAddress:
    """Delivery address captured at checkout time; never follows later address edits."""

    street = String(required=True, max_length=255)
    number = String(required=True, max_length=20)
    complement = String(max_length=255)
    neighborhood = String(required=True, max_length=100)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=2)
    zip_code = String(required=True, max_length=9)

    @invariant.post
    def zip_code_must_have_eight_digits(self):
        if len(re.sub(r"\D", "", self.zip_code or "")) != 8:
            raise ValidationError({"zip_code": [f"Invalid postal code: {self.zip_code!r}"]})

    def to_record(self) -> dict:
        record = {
            "street": self.street,
            "number": self.number,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
        }
        if self.complement:
            record["complement"] = self.complement
        return record

    @classmethod
    def from_record(cls, record: dict) -> "ShippingAddress":
        return cls(
            street=record.get("street"),
            number=str(record.get("number") or ""),
            complement=record.get("complement"),
            neighborhood=record.get("neighborhood"),
            city=record.get("city"),
            state=record.get("state"),
            zip_code=record.get("zip_code") or record.get("zipCode"),
        )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------
def _freeze(record):
    """Read-only view of a line record, nested mappings included."""
    return MappingProxyType({key: _freeze(value) if isinstance(value, dict) else value for key, value in record.items()})


def _thaw(record) -> dict:
    return {key: _thaw(value) if isinstance(value, MappingProxyType) else value for key, value in record.items()}


def generate_order_number() -> str:
    """Customer-facing order number: ``V-`` followed by six digits."""
    return f"V-{secrets.randbelow(1_000_000):06d}"


@dataclass(frozen=True)
class OrderSnapshot:
    order_number: str
    items: tuple[MappingProxyType, ...]
    subtotal: float
    discount_amount: float
    shipping_price: float
    total_price: float
    customer_info: CustomerInfo
    shipping_address: ShippingAddress
    coupon_code: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def unit_count(self) -> int:
        return sum(item["quantity"] for item in self.items)

    def to_payload(self) -> dict:
        """Checkout submission payload for the order/payment API."""
        payload = {
            "orderNumber": self.order_number,
            "items": [_thaw(item) for item in self.items],
            "customerInfo": self.customer_info.to_record(),
            "shippingAddress": self.shipping_address.to_record(),
            "totals": {
                "subtotal": self.subtotal,
                "discount": self.discount_amount,
                "shipping": self.shipping_price,
                "total": self.total_price,
            },
            "createdAt": self.created_at.isoformat(),
        }
        if self.coupon_code:
            payload["couponCode"] = self.coupon_code
        return payload

    def to_last_order(self, preference_id: str | None = None) -> dict:
        """Record kept in the one-shot "lastOrder" slot for the confirmation page."""
        record = {
            "orderNumber": self.order_number,
            "items": [_thaw(item) for item in self.items],
            "total": self.total_price,
            "customerInfo": self.customer_info.to_record(),
            "shippingAddress": self.shipping_address.to_record(),
        }
        if preference_id:
            record["preferenceId"] = preference_id
        return record


def build_snapshot(cart, customer_info, shipping_address) -> OrderSnapshot:
    """Freeze ``cart`` into an ``OrderSnapshot``.

    ``customer_info`` and ``shipping_address`` may be value objects or their
    record dicts. Raises ``EmptyCartError`` for a cart without lines.
    """
    if cart.is_empty:
        raise EmptyCartError({"cart": ["Cannot check out an empty cart"]})

    if isinstance(customer_info, dict):
        customer_info = CustomerInfo.from_record(customer_info)
    if isinstance(shipping_address, dict):
        shipping_address = ShippingAddress.from_record(shipping_address)

    totals = cart.totals()
    return OrderSnapshot(
        order_number=generate_order_number(),
        items=tuple(_freeze(line.to_record()) for line in cart.lines),
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        shipping_price=totals.shipping_price,
        total_price=totals.total_price,
        customer_info=customer_info,
        shipping_address=shipping_address,
        coupon_code=cart.coupon.code if cart.coupon is not None else None,
    )
