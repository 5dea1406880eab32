# casa_cart/domain/schemas.py
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from casa_cart.domain.money import Money
from casa_cart.domain.order_status import DeliveryStatus, PaymentStatus
from casa_cart.utils.settings import DEFAULT_SIZE, MAX_LINE_QUANTITY


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# requests
class PhoneIn(WireModel):
    phone: str = Field(..., min_length=1, description="Customer phone number, opaque key")


class CartItemIn(PhoneIn):
    """Schema for POST /api/cart/items."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_LINE_QUANTITY, description="Quantity to add (>= 1)")
    size: str = Field(DEFAULT_SIZE, min_length=1)


class CartItemUpdateIn(PhoneIn):
    """Schema for PUT /api/cart/items, quantity <= 0 removes the line."""

    product_id: str = Field(..., min_length=1)
    size: str = Field(..., min_length=1)
    quantity: int = Field(..., le=MAX_LINE_QUANTITY)


class CartItemRemoveIn(PhoneIn):
    """Schema for DELETE /api/cart/items, no size removes every size."""

    product_id: str = Field(..., min_length=1)
    size: str | None = None

    @field_validator("size", mode="before")
    @classmethod
    def blank_size_means_all(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class OrderProductIn(WireModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_LINE_QUANTITY)
    size: str = DEFAULT_SIZE
    price_at_add: Money | None = None


class OrderCreateIn(WireModel):
    """Schema for POST /api/orders/create."""

    user: str = Field(..., min_length=1)
    products: List[OrderProductIn]
    address: str = Field(..., min_length=1)
    estimated_delivery: datetime
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str | None = None


class OrderUpdateIn(WireModel):
    """Schema for PUT /api/orders/update/{id}. Products are immutable."""

    model_config = ConfigDict(extra="forbid")

    delivery_status: DeliveryStatus | None = None
    payment_status: PaymentStatus | None = None
    address: str | None = None
    estimated_delivery: datetime | None = None


class CheckoutIn(PhoneIn):
    """Schema for POST /api/checkout."""

    user: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    payment_method: str | None = None
    payment_status: PaymentStatus | None = None
    checkout_key: str | None = Field(None, min_length=1, max_length=64)


# responses
class CartItemOut(WireModel):
    id: int | None = Field(None, alias="_id")
    product_id: str
    quantity: int
    size: str
    price_at_add: Money
    added_at: datetime | None = None


class CartOut(WireModel):
    id: int | None = Field(None, alias="_id")
    phone: str
    items: List[CartItemOut]
    total_items: int
    total_amount: Money
    updated_at: datetime | None = None


class CartData(BaseModel):
    cart: CartOut


class CartEnvelope(BaseModel):
    success: bool = True
    data: CartData
    message: str


class OrderProductOut(WireModel):
    product_id: str
    quantity: int
    size: str
    unit_price: Money


class OrderOut(WireModel):
    id: int = Field(..., alias="_id")
    user: str
    phone: str | None = None
    products: List[OrderProductOut]
    delivery_status: str
    payment_status: str
    payment_method: str | None = None
    address: str
    estimated_delivery: datetime
    total_amount: Money
    checkout_key: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class OrderData(BaseModel):
    order: OrderOut


class OrderEnvelope(BaseModel):
    success: bool = True
    data: OrderData
    message: str


class OrderListData(BaseModel):
    orders: List[OrderOut]


class OrderListEnvelope(BaseModel):
    success: bool = True
    data: OrderListData
    message: str


class MessageOut(BaseModel):
    success: bool = True
    message: str


class ErrorOut(BaseModel):
    success: bool = False
    error: str
    details: str
    retryable: bool = False
