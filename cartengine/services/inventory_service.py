# cartengine/services/inventory_service.py
"""
Rezerwacja stanow magazynowych w ramach transakcji zamowienia.

To jedyne miejsce, ktore zmienia reserved/available. Bez read-then-write:
- wariant: jeden warunkowy UPDATE (sprawdzenie dostepnosci + zmiana naraz)
- pula (produkt bez wariantu): SELECT ... FOR UPDATE SKIP LOCKED na jednym
  wierszu, potem UPDATE z warunkiem, az do pokrycia calej ilosci

Blad rezerwacji (InsufficientStockError) przerywa cale zamowienie,
rollback robi wywolujacy.
"""
import uuid
from datetime import datetime, timezone
from typing import Iterable, Protocol

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from cartengine.data.models.inventory import InventoryModel
from cartengine.data.models.product import ProductModel, ProductVariantModel
from cartengine.domain.errors import InsufficientStockError
from cartengine.repos.settings_repo import SettingsRepo
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)


class ReservableLine(Protocol):
    product_id: uuid.UUID
    variant_id: uuid.UUID | None
    product_name: str
    quantity: int


def stock_status_for(available: int, low_stock_threshold: int) -> str:
    if available <= 0:
        return "out_of_stock"
    if available <= low_stock_threshold:
        return "low_stock"
    return "in_stock"


class InventoryService:
    def __init__(self, db: Session):
        self.db = db
        self.settings = SettingsRepo(db)

    # ----- odczyt -----

    def variant_available(self, variant_id: uuid.UUID) -> int | None:
        row = self.db.execute(
            select(ProductVariantModel.stock_quantity - ProductVariantModel.reserved_quantity)
            .where(ProductVariantModel.id == variant_id)
        ).first()
        return int(row[0]) if row else None

    def pooled_available(self, product_id: uuid.UUID) -> int:
        total = self.db.execute(
            select(func.coalesce(func.sum(InventoryModel.available_quantity), 0))
            .where(InventoryModel.product_id == product_id, InventoryModel.variant_id.is_(None))
        ).scalar_one()
        return int(total)

    def variants_available(self, product_id: uuid.UUID) -> int:
        total = self.db.execute(
            select(
                func.coalesce(
                    func.sum(ProductVariantModel.stock_quantity - ProductVariantModel.reserved_quantity), 0
                )
            ).where(ProductVariantModel.product_id == product_id, ProductVariantModel.is_active.is_(True))
        ).scalar_one()
        return int(total)

    def available_for(self, product_id: uuid.UUID, variant_id: uuid.UUID | None = None) -> int:
        if variant_id is not None:
            return self.variant_available(variant_id) or 0
        return self.pooled_available(product_id)

    # ----- rezerwacja -----

    def reserve_lines(self, lines: Iterable[ReservableLine]) -> None:
        threshold = self.settings.get_low_stock_threshold()

        for line in lines:
            qty = int(line.quantity or 0)
            if qty <= 0:
                continue
            if line.variant_id is not None:
                self.reserve_variant(line, qty, threshold)
            else:
                self.reserve_pooled(line, qty, threshold)

    def reserve_variant(self, line: ReservableLine, qty: int, threshold: int) -> None:
        result = self.db.execute(
            update(ProductVariantModel)
            .where(
                ProductVariantModel.id == line.variant_id,
                ProductVariantModel.stock_quantity - ProductVariantModel.reserved_quantity >= qty,
            )
            .values(reserved_quantity=ProductVariantModel.reserved_quantity + qty)
        )

        if result.rowcount == 0:
            logger.warning(f"Variant {line.variant_id}: cannot reserve {qty} for {line.product_name}")
            raise InsufficientStockError(line.product_name)

        product_id = self.db.execute(
            select(ProductVariantModel.product_id).where(ProductVariantModel.id == line.variant_id)
        ).scalar_one()

        logger.info(f"Reserved {qty} of variant {line.variant_id}")
        self._set_stock_status(product_id, self.variants_available(product_id), threshold)

    def reserve_pooled(self, line: ReservableLine, qty: int, threshold: int) -> None:
        remaining = qty

        while remaining > 0:
            # SKIP LOCKED: dwa rownolegle checkouty nie wezma tego samego wiersza
            picked = self.db.execute(
                select(InventoryModel.id, InventoryModel.available_quantity)
                .where(
                    InventoryModel.product_id == line.product_id,
                    InventoryModel.variant_id.is_(None),
                    InventoryModel.available_quantity > 0,
                )
                .order_by(InventoryModel.available_quantity.desc(), InventoryModel.updated_at.desc())
                .limit(1)
                .with_for_update(skip_locked=True)
            ).first()

            if picked is None:
                logger.warning(
                    f"Product {line.product_id}: no lockable stock left, {remaining} of {qty} unreserved"
                )
                raise InsufficientStockError(line.product_name)

            take = min(remaining, int(picked.available_quantity))
            result = self.db.execute(
                update(InventoryModel)
                .where(InventoryModel.id == picked.id, InventoryModel.available_quantity >= take)
                .values(
                    reserved_quantity=InventoryModel.reserved_quantity + take,
                    available_quantity=InventoryModel.available_quantity - take,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount == 0:
                continue

            remaining -= take
            logger.info(f"Reserved {take} of product {line.product_id} from inventory row {picked.id}")

        self._set_stock_status(line.product_id, self.pooled_available(line.product_id), threshold)

    def _set_stock_status(self, product_id: uuid.UUID, available: int, threshold: int) -> None:
        status = stock_status_for(available, threshold)
        self.db.execute(
            update(ProductModel).where(ProductModel.id == product_id).values(stock_status=status)
        )
