"""Pydantic request/response schemas for the Shopping API.

These are external contracts (anti-corruption layer) — separate from the
cart aggregate and its value objects.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ProductSchema(BaseModel):
    product_id: str
    product_slug: str = ""
    title: str
    base_price: float = Field(ge=0)
    image: str = ""
    team: str = ""
    sizes: list[str] = Field(default_factory=list)


class CustomizationSchema(BaseModel):
    name: str | None = Field(default=None, max_length=50)
    number: str | None = Field(default=None, max_length=10)


class CustomerInfoSchema(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str
    document: str


class ShippingAddressSchema(BaseModel):
    street: str
    number: str
    complement: str | None = None
    neighborhood: str
    city: str
    state: str = Field(min_length=2, max_length=2)
    zip_code: str


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class AddItemRequest(BaseModel):
    product: ProductSchema
    size: str
    quantity: int = Field(ge=1, default=1)
    customization: CustomizationSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product": {
                        "product_id": "prod-flamengo-home-24",
                        "product_slug": "flamengo-home-24",
                        "title": "Flamengo Home 24/25",
                        "base_price": 89.90,
                        "team": "Flamengo",
                        "sizes": ["P", "M", "G", "GG"],
                    },
                    "size": "M",
                    "quantity": 1,
                    "customization": {"name": "GABIGOL", "number": "10"},
                }
            ]
        }
    }


class UpdateQuantityRequest(BaseModel):
    # Zero removes the line
    quantity: int = Field(ge=0)


class ApplyCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    timeout: float | None = Field(default=None, gt=0)


class RestoreCartRequest(BaseModel):
    state: dict


class CheckoutRequest(BaseModel):
    customer_info: CustomerInfoSchema
    shipping_address: ShippingAddressSchema
    preference_id: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class CartLineResponse(BaseModel):
    id: str
    product_id: str
    product_slug: str
    title: str
    image: str
    team: str
    base_price: float
    customization_fee: float
    unit_price: float
    size: str
    quantity: int
    line_total: float
    customization: CustomizationSchema | None = None


class CouponResponse(BaseModel):
    code: str
    kind: str
    discount_amount: float
    discount_percent: float | None = None


class TotalsResponse(BaseModel):
    cart_count: int
    base_subtotal: float
    total_customization_fee: float
    subtotal: float
    discount_amount: float
    shipping_price: float
    total_price: float


class CartResponse(BaseModel):
    session_id: str
    lines: list[CartLineResponse]
    coupon: CouponResponse | None = None
    totals: TotalsResponse
    is_validating_coupon: bool = False


class ClearCartResponse(BaseModel):
    cart: CartResponse
    previous_state: dict


class ShippingQuoteResponse(BaseModel):
    unit_count: int
    price: float
    description: str
    is_free: bool
    units_to_free_shipping: int | None = None
    savings: float | None = None


class CheckoutResponse(BaseModel):
    order_number: str
    payload: dict
