import uuid

from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, Boolean, Table, Uuid, CheckConstraint
from sqlalchemy.orm import relationship

from cartengine.data.database import Base


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Uuid, primary_key=True),
)


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock_status = Column(String(20), nullable=False, default="in_stock")  # in_stock, low_stock, out_of_stock

    variants = relationship("ProductVariantModel", back_populates="product")


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    # zmieniane tylko przez InventoryService
    stock_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("ProductModel", back_populates="variants")

    __table_args__ = (
        CheckConstraint("reserved_quantity <= stock_quantity", name="ck_variant_reserved_le_stock"),
    )
