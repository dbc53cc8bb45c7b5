# cartengine/domain/schemas.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, ConfigDict


class CreateCartIn(BaseModel):
    """Schema dla pobrania/utworzenia koszyka (gosc po session_id)."""

    session_id: str | None = Field(None, min_length=1, max_length=255, description="ID sesji goscia")


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: uuid.UUID
    variant_id: uuid.UUID | None = None
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")


class QuantityIn(BaseModel):
    quantity: int = Field(..., gt=0, description="Nowa ilość (musi być > 0)")


class DiscountCodeIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class CartItemOut(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID | None = None
    product_name: str
    variant_name: str | None = None
    sku: str | None = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_gift: bool = False


class AppliedDiscountOut(BaseModel):
    id: uuid.UUID
    code: str | None = None
    type: str
    value: Decimal
    amount: Decimal
    is_automatic: bool
    free_shipping: bool


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    id: uuid.UUID
    user_id: uuid.UUID | None = None
    session_id: str | None = None
    status: str
    currency: str
    items: List[CartItemOut]
    item_count: int
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    applied_discount: AppliedDiscountOut | None = None

    model_config = ConfigDict(from_attributes=True)


class ShippingAddressIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company: str | None = Field(None, max_length=255)
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: str | None = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=2, description="Kod kraju ISO 3166-1 alpha-2")
    phone: str | None = Field(None, max_length=20)
    email: str | None = Field(None, max_length=255)
    notes: str | None = None


class ShippingMethodIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)


class PlaceOrderIn(BaseModel):
    """Schema dla zlozenia zamowienia z koszyka."""

    cart_id: uuid.UUID
    shipping_address: ShippingAddressIn | None = None
    shipping_method: ShippingMethodIn
    payment_method: str = Field(..., min_length=1, max_length=50)
    customer_email: str | None = Field(None, max_length=255)
    customer_phone: str | None = Field(None, max_length=20)


class OrderPlacedOut(BaseModel):
    order_id: uuid.UUID
    order_number: str
    warnings: List[str] = []


class OrderItemOut(BaseModel):
    product_id: uuid.UUID | None = None
    variant_id: uuid.UUID | None = None
    product_name: str
    variant_name: str | None = None
    sku: str | None = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_gift: bool = False

    model_config = ConfigDict(from_attributes=True)


class OrderDiscountOut(BaseModel):
    discount_id: uuid.UUID | None = None
    code: str | None = None
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderShippingAddressOut(BaseModel):
    first_name: str
    last_name: str
    company: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str
    phone: str | None = None
    email: str | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: uuid.UUID
    order_number: str
    cart_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    status: str
    payment_status: str
    payment_method: str | None = None
    shipping_method_id: str | None = None
    shipping_method_name: str | None = None
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str
    customer_email: str | None = None
    customer_phone: str | None = None
    created_at: datetime
    items: List[OrderItemOut]
    discounts: List[OrderDiscountOut] = []
    shipping_address: OrderShippingAddressOut | None = None

    model_config = ConfigDict(from_attributes=True)
