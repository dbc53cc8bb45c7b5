import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, ForeignKey, String, DateTime, Numeric, Text, Uuid
from sqlalchemy.orm import relationship

from cartengine.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number = Column(String(50), nullable=False, unique=True)
    cart_id = Column(Uuid, ForeignKey("carts.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Uuid, nullable=True, index=True)
    # zamowienie goscia jest widoczne tylko w tej samej sesji
    session_id = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(30), nullable=True)
    shipping_method_id = Column(String(100), nullable=True)
    shipping_method_name = Column(String(255), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="CAD")

    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship("OrderItemModel", back_populates="order", cascade="all, delete-orphan")
    discounts = relationship("OrderDiscountModel", cascade="all, delete-orphan")
    shipping_address = relationship("OrderShippingAddressModel", uselist=False, cascade="all, delete-orphan")


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, nullable=True)
    variant_id = Column(Uuid, nullable=True)

    # snapshot z chwili zakupu, nie odtwarzany z katalogu
    product_name = Column(String(255), nullable=False)
    variant_name = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    is_gift = Column(Boolean, nullable=False, default=False)

    order = relationship("OrderModel", back_populates="items")


class OrderDiscountModel(Base):
    __tablename__ = "order_discounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    discount_id = Column(Uuid, ForeignKey("discounts.id", ondelete="SET NULL"), nullable=True)
    code = Column(String(50), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class OrderShippingAddressModel(Base):
    __tablename__ = "order_shipping_addresses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    company = Column(String(255), nullable=True)
    address_line1 = Column(String(255), nullable=False)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
