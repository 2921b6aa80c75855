"""Error kinds for cart mutations and coupon application.

The aggregate raises ``ValidationError`` subclasses, as every aggregate in
the codebase does; the cart store catches them and hands the UI a
``CartError``/``CouponError`` it can render a specific message for.
"""

from enum import Enum

from protean.exceptions import ValidationError


class CartError(Enum):
    CAPACITY_EXCEEDED = "Capacity_Exceeded"
    LINE_NOT_FOUND = "Line_Not_Found"
    INVALID_ITEM = "Invalid_Item"
    EMPTY_CART = "Empty_Cart"
    INVALID_CHECKOUT_DETAILS = "Invalid_Checkout_Details"


class CouponError(Enum):
    NOT_FOUND = "Not_Found"
    INACTIVE = "Inactive"
    EXPIRED = "Expired"
    ALREADY_APPLIED = "Already_Applied"
    VALIDATION_TIMEOUT = "Validation_Timeout"
    BUSY = "Busy"


class CapacityExceeded(ValidationError):
    """The mutation would push the cart's unit count above the maximum."""


class LineNotFound(ValidationError):
    """No line with the given id exists in the cart."""


class EmptyCartError(ValidationError):
    """Checkout was attempted on a cart with no lines."""
