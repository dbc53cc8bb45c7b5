import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, DateTime, Boolean, JSON, Table, Uuid

from cartengine.data.database import Base


discount_products = Table(
    "discount_products",
    Base.metadata,
    Column("discount_id", Uuid, ForeignKey("discounts.id", ondelete="CASCADE"), primary_key=True),
    Column("product_id", Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
)

discount_categories = Table(
    "discount_categories",
    Base.metadata,
    Column("discount_id", Uuid, ForeignKey("discounts.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Uuid, primary_key=True),
)


class DiscountModel(Base):
    __tablename__ = "discounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    # NULL = tylko automatyczny
    code = Column(String(50), nullable=True, unique=True)

    type = Column(String(20), nullable=False)  # percentage, fixed_amount, free_shipping
    scope = Column(String(20), nullable=False, default="all")  # all, products, categories, collections, customer_groups
    value = Column(Numeric(10, 2), nullable=False)
    min_subtotal = Column(Numeric(10, 2), nullable=True)

    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)

    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    is_automatic = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="draft", index=True)  # draft, active, expired, archived

    # "metadata" jest zarezerwowane w declarative Base
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
