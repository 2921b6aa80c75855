"""FastAPI routes for the Shopping domain — one cart per browsing session."""

import os
from collections import OrderedDict

from fastapi import APIRouter, HTTPException

from shopping.api.schemas import (
    AddItemRequest,
    ApplyCouponRequest,
    CartLineResponse,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    ClearCartResponse,
    CouponResponse,
    CustomizationSchema,
    RestoreCartRequest,
    ShippingQuoteResponse,
    TotalsResponse,
    UpdateQuantityRequest,
)
from shopping.cart.cart import ProductRecord
from shopping.cart.errors import CartError, CouponError
from shopping.cart.store import CartStore
from shopping.persistence import get_storage
from shopping.persistence.adapter import CartPersistence
from shopping.pricing.shipping import next_shipping_discount, quote_shipping

# HTTP status for every refusal a cart operation can report
_ERROR_STATUS = {
    CartError.CAPACITY_EXCEEDED: 409,
    CartError.LINE_NOT_FOUND: 404,
    CartError.INVALID_ITEM: 422,
    CartError.EMPTY_CART: 400,
    CartError.INVALID_CHECKOUT_DETAILS: 422,
    CouponError.NOT_FOUND: 404,
    CouponError.INACTIVE: 422,
    CouponError.EXPIRED: 422,
    CouponError.ALREADY_APPLIED: 409,
    CouponError.VALIDATION_TIMEOUT: 504,
    CouponError.BUSY: 409,
}

# Least recently used first; evicted stores reload from storage on next access
_stores: OrderedDict[str, CartStore] = OrderedDict()


def max_open_stores() -> int:
    return int(os.environ.get("KITSTORE_MAX_OPEN_CARTS", "1024"))


def get_store(session_id: str) -> CartStore:
    """Return the cart store of ``session_id``, loading it from storage on first access."""
    store = _stores.get(session_id)
    if store is not None:
        _stores.move_to_end(session_id)
        return store

    persistence = CartPersistence(get_storage(), namespace=session_id)
    store = CartStore(persistence=persistence, session_id=session_id)
    _stores[session_id] = store

    while len(_stores) > max_open_stores():
        _, evicted = _stores.popitem(last=False)
        evicted.close()
    return store


def reset_stores() -> None:
    """Forget every open store (useful for tests)."""
    for store in _stores.values():
        store.close()
    _stores.clear()


def _raise_for(result) -> None:
    if not result.success:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(result.error, 400),
            detail={"error": result.error.value, "message": result.message},
        )


def _cart_response(session_id: str, store: CartStore) -> CartResponse:
    lines = [
        CartLineResponse(
            id=str(line.id),
            product_id=str(line.product_id),
            product_slug=line.product_slug or "",
            title=line.title,
            image=line.image or "",
            team=line.team or "",
            base_price=line.base_price,
            customization_fee=line.customization_fee or 0.0,
            unit_price=line.unit_price,
            size=line.size,
            quantity=line.quantity,
            line_total=line.line_total,
            customization=(
                CustomizationSchema(**line.customization.to_record()) if line.customization is not None else None
            ),
        )
        for line in store.lines
    ]

    coupon = None
    if store.coupon is not None:
        coupon = CouponResponse(
            code=store.coupon.code,
            kind=store.coupon.kind,
            discount_amount=store.coupon.discount_amount,
            discount_percent=store.coupon.discount_percent,
        )

    return CartResponse(
        session_id=session_id,
        lines=lines,
        coupon=coupon,
        totals=TotalsResponse(**store.totals.to_dict()),
        is_validating_coupon=store.is_validating_coupon,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{session_id}", response_model=CartResponse)
async def get_cart(session_id: str) -> CartResponse:
    return _cart_response(session_id, get_store(session_id))


@cart_router.post("/{session_id}/items", response_model=CartResponse)
async def add_cart_item(session_id: str, body: AddItemRequest) -> CartResponse:
    store = get_store(session_id)
    product = ProductRecord(
        product_id=body.product.product_id,
        product_slug=body.product.product_slug,
        title=body.product.title,
        base_price=body.product.base_price,
        image=body.product.image,
        team=body.product.team,
        sizes=tuple(body.product.sizes),
    )
    customization = body.customization.model_dump(exclude_none=True) if body.customization else None
    result = store.add_item(product, body.size, quantity=body.quantity, customization=customization)
    _raise_for(result)
    return _cart_response(session_id, store)


@cart_router.put("/{session_id}/items/{line_id}", response_model=CartResponse)
async def update_cart_item_quantity(session_id: str, line_id: str, body: UpdateQuantityRequest) -> CartResponse:
    store = get_store(session_id)
    _raise_for(store.update_quantity(line_id, body.quantity))
    return _cart_response(session_id, store)


@cart_router.delete("/{session_id}/items/{line_id}", response_model=CartResponse)
async def remove_cart_item(session_id: str, line_id: str) -> CartResponse:
    store = get_store(session_id)
    _raise_for(store.remove_item(line_id))
    return _cart_response(session_id, store)


@cart_router.delete("/{session_id}", response_model=ClearCartResponse)
async def clear_cart(session_id: str) -> ClearCartResponse:
    store = get_store(session_id)
    result = store.clear_cart()
    return ClearCartResponse(cart=_cart_response(session_id, store), previous_state=result.previous_state)


@cart_router.post("/{session_id}/restore", response_model=CartResponse)
async def restore_cart(session_id: str, body: RestoreCartRequest) -> CartResponse:
    store = get_store(session_id)
    _raise_for(store.restore(body.state))
    return _cart_response(session_id, store)


@cart_router.post("/{session_id}/coupons", response_model=CartResponse)
async def apply_cart_coupon(session_id: str, body: ApplyCouponRequest) -> CartResponse:
    store = get_store(session_id)
    _raise_for(await store.apply_coupon(body.code, timeout=body.timeout))
    return _cart_response(session_id, store)


@cart_router.delete("/{session_id}/coupons", response_model=CartResponse)
async def remove_cart_coupon(session_id: str) -> CartResponse:
    store = get_store(session_id)
    _raise_for(store.remove_coupon())
    return _cart_response(session_id, store)


@cart_router.post("/{session_id}/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout_cart(session_id: str, body: CheckoutRequest) -> CheckoutResponse:
    """Freeze the cart into an order payload.

    1. Build the snapshot from the live cart
    2. Keep it in the session's "lastOrder" slot for the confirmation page
    3. Reset the cart
    """
    store = get_store(session_id)
    result = store.checkout(
        customer_info=body.customer_info.model_dump(),
        shipping_address=body.shipping_address.model_dump(),
        preference_id=body.preference_id,
    )
    _raise_for(result)
    return CheckoutResponse(order_number=result.snapshot.order_number, payload=result.snapshot.to_payload())


@cart_router.get("/{session_id}/last-order")
async def get_last_order(session_id: str) -> dict:
    """Confirmation-page read of the last order. Available exactly once."""
    record = get_store(session_id).consume_last_order()
    if record is None:
        raise HTTPException(status_code=404, detail="No recent order for this session")
    return record


# ---------------------------------------------------------------------------
# Shipping Router
# ---------------------------------------------------------------------------
shipping_router = APIRouter(prefix="/shipping", tags=["shipping"])


@shipping_router.get("/{unit_count}", response_model=ShippingQuoteResponse)
async def get_shipping_quote(unit_count: int) -> ShippingQuoteResponse:
    if unit_count < 0:
        raise HTTPException(status_code=422, detail="Unit count cannot be negative")

    quote = quote_shipping(unit_count)
    upsell = next_shipping_discount(unit_count)
    return ShippingQuoteResponse(
        unit_count=quote.unit_count,
        price=quote.price,
        description=quote.description,
        is_free=quote.is_free,
        units_to_free_shipping=upsell.units_needed if upsell else None,
        savings=upsell.savings if upsell else None,
    )
