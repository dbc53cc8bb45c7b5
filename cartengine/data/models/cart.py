#cartengine/data/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON, Uuid
from sqlalchemy.orm import relationship

from cartengine.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=True, index=True)
    session_id = Column(String(255), nullable=True, index=True)

    status = Column(String(20), nullable=False, default="active", index=True)  # active, abandoned, converted, expired
    currency = Column(String(3), nullable=False, default="CAD")
    version = Column(Integer, nullable=False, default=1)

    applied_discount_id = Column(Uuid, nullable=True)
    applied_discount_code = Column(String(50), nullable=True)
    # "discount_id:product_id" -> true, gratisy usuniete recznie przez klienta
    gift_suppressions = Column(JSON, nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    abandoned_at = Column(DateTime(timezone=True), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.created_at",
    )
