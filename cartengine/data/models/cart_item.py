import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, ForeignKey, Numeric, String, DateTime, Uuid
from sqlalchemy.orm import relationship

from cartengine.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id = Column(Uuid, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, nullable=False, index=True)
    variant_id = Column(Uuid, nullable=True)

    # denormalizacja z katalogu w momencie dodania
    product_name = Column(String(255), nullable=False)
    variant_name = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    # gratis z promocji bxgy_bundle, cena 0, poza wycena rabatow
    is_gift = Column(Boolean, nullable=False, default=False)
    gift_discount_id = Column(Uuid, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    cart = relationship("CartModel", back_populates="items")
