"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from shopping.domain import shopping


@shopping.event(part_of="Cart")
class CartItemAdded:
    """A product/size/personalization combination was added to the cart (or its quantity grew)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String(required=True)
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    customization_fee = Float(default=0.0)


@shopping.event(part_of="Cart")
class CartQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@shopping.event(part_of="Cart")
class CartItemRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)


@shopping.event(part_of="Cart")
class CartCleared:
    """Every line and the active coupon were removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    lines_removed = Integer(required=True)
    cleared_at = DateTime()


@shopping.event(part_of="Cart")
class CartRestored:
    """A previously captured cart state was put back (undo of a clear)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    lines_restored = Integer(required=True)


@shopping.event(part_of="Cart")
class CartCouponApplied:
    """A validated coupon became the cart's active coupon."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_amount = Float(required=True)


@shopping.event(part_of="Cart")
class CartCouponRemoved:
    """The cart's active coupon was removed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
