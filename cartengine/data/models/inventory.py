import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, CheckConstraint, Uuid

from cartengine.data.database import Base


class InventoryModel(Base):
    """
    Wiersz stanu magazynowego. Produkt bez wariantu moze miec kilka wierszy
    (np. lokalizacje). available_quantity = quantity - reserved_quantity,
    utrzymywane przy kazdej rezerwacji.
    """
    __tablename__ = "inventory"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Uuid, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True)
    location = Column(String(100), nullable=True)

    quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    available_quantity = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("reserved_quantity <= quantity", name="ck_inventory_reserved_le_quantity"),
        CheckConstraint("available_quantity >= 0", name="ck_inventory_available_non_negative"),
    )
