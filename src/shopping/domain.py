"""Shopping bounded context — Cart & Pricing engine.

Owns the shopping-cart contents, computes subtotal/shipping/discount/total,
validates promotional coupons, mirrors cart state to a durable key-value slot
and freezes the cart into an order snapshot at checkout.
"""

import structlog
from protean.domain import Domain

shopping = Domain(name="shopping")

logger = structlog.get_logger(__name__)
