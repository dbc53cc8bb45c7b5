# cartengine/repos/discount_repo.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError as MetadataValidationError
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import Session

from cartengine.data.models.discount import DiscountModel, discount_products, discount_categories
from cartengine.data.models.product import product_categories
from cartengine.domain.discounts import (
    AllLines,
    CategoryTargets,
    DiscountMetadata,
    DiscountRule,
    DiscountScope,
    DiscountType,
    ProductTargets,
    UnsupportedScope,
    normalize_code,
)
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)


class DiscountRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_discount(self, discount_id: uuid.UUID) -> DiscountModel | None:
        return self.db.get(DiscountModel, discount_id)

    def get_by_code(self, code: str) -> DiscountModel | None:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self.db.execute(
            select(DiscountModel).where(func.upper(func.trim(DiscountModel.code)) == normalized).limit(1)
        ).scalar_one_or_none()

    def list_active_automatic(self, now: datetime) -> list[DiscountModel]:
        stmt = (
            select(DiscountModel)
            .where(
                DiscountModel.is_automatic.is_(True),
                DiscountModel.status == "active",
                or_(DiscountModel.starts_at.is_(None), DiscountModel.starts_at <= now),
                or_(DiscountModel.ends_at.is_(None), DiscountModel.ends_at >= now),
            )
            .order_by(DiscountModel.created_at, DiscountModel.id)
        )
        return list(self.db.execute(stmt).scalars())

    def product_targets(self, discount_id: uuid.UUID) -> frozenset[uuid.UUID]:
        rows = self.db.execute(
            select(discount_products.c.product_id).where(discount_products.c.discount_id == discount_id)
        ).scalars()
        return frozenset(rows)

    def category_targets(self, discount_id: uuid.UUID) -> frozenset[uuid.UUID]:
        rows = self.db.execute(
            select(discount_categories.c.category_id).where(discount_categories.c.discount_id == discount_id)
        ).scalars()
        return frozenset(rows)

    def product_category_map(self, product_ids) -> dict[uuid.UUID, set[uuid.UUID]]:
        product_ids = list(set(product_ids))
        if not product_ids:
            return {}
        mapping: dict[uuid.UUID, set[uuid.UUID]] = {}
        rows = self.db.execute(
            select(product_categories.c.product_id, product_categories.c.category_id)
            .where(product_categories.c.product_id.in_(product_ids))
        )
        for product_id, category_id in rows:
            mapping.setdefault(product_id, set()).add(category_id)
        return mapping

    def lock_discount(self, discount_id: uuid.UUID) -> DiscountModel | None:
        # SELECT ... FOR UPDATE, swiezy odczyt licznika do konca transakcji
        return self.db.execute(
            select(DiscountModel)
            .where(DiscountModel.id == discount_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def increment_usage(self, discount_id: uuid.UUID) -> int:
        # 0 = limit wyczerpany
        result = self.db.execute(
            update(DiscountModel)
            .where(
                DiscountModel.id == discount_id,
                or_(DiscountModel.usage_limit.is_(None), DiscountModel.usage_count < DiscountModel.usage_limit),
            )
            .values(usage_count=DiscountModel.usage_count + 1)
        )
        return result.rowcount

    def load_rule(self, discount: DiscountModel) -> DiscountRule:
        """Buduje niezmienny DiscountRule: rozwiazuje zakres i waliduje metadane."""
        scope = DiscountScope(discount.scope)
        if scope in (DiscountScope.ALL, DiscountScope.CUSTOMER_GROUPS):
            target = AllLines()
        elif scope == DiscountScope.PRODUCTS:
            target = ProductTargets(self.product_targets(discount.id))
        elif scope == DiscountScope.CATEGORIES:
            target = CategoryTargets(self.category_targets(discount.id))
        else:
            target = UnsupportedScope(scope)

        metadata = None
        metadata_error = None
        if discount.meta:
            try:
                metadata = DiscountMetadata.model_validate(discount.meta)
            except MetadataValidationError as e:
                metadata_error = str(e)
                logger.warning(f"Discount {discount.id} has invalid metadata, ignoring it: {e}")

        return DiscountRule(
            id=discount.id,
            name=discount.name,
            code=discount.code,
            type=DiscountType(discount.type),
            scope=target,
            value=Decimal(str(discount.value)),
            min_subtotal=Decimal(str(discount.min_subtotal)) if discount.min_subtotal is not None else None,
            metadata=metadata,
            metadata_error=metadata_error,
            is_automatic=bool(discount.is_automatic),
        )
