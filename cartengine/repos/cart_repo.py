# cartengine/repos/cart_repo.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from cartengine.data.models.cart import CartModel
from cartengine.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: uuid.UUID) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_active_cart(
        self,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.status == "active")
        if user_id is not None:
            stmt = stmt.where(CartModel.user_id == user_id)
        elif session_id:
            stmt = stmt.where(CartModel.session_id == session_id, CartModel.user_id.is_(None))
        else:
            return None
        return self.db.execute(stmt.order_by(CartModel.created_at).limit(1)).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_cart_items(self, cart_id: uuid.UUID) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.created_at)
            ).scalars()
        )

    def get_cart_item(self, item_id: uuid.UUID) -> CartItemModel | None:
        return self.db.get(CartItemModel, item_id)

    def find_line(
        self,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None,
    ) -> CartItemModel | None:
        # tylko linie platne, gratis jest osobna pozycja
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.product_id == product_id,
            CartItemModel.is_gift.is_(False),
        )
        if variant_id is not None:
            stmt = stmt.where(CartItemModel.variant_id == variant_id)
        else:
            stmt = stmt.where(CartItemModel.variant_id.is_(None))
        return self.db.execute(stmt.limit(1)).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def delete_cart_items(self, cart_id: uuid.UUID) -> int:
        result = self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart_id))
        self.db.expire_all()
        return result.rowcount

    def set_gift_suppressions(self, cart: CartModel, suppressions: dict) -> None:
        # nowy dict, zeby JSON zostal oznaczony jako zmieniony
        cart.gift_suppressions = dict(suppressions) or None
        self.db.flush()

    def update_totals(
        self,
        cart_id: uuid.UUID,
        *,
        subtotal: Decimal,
        tax_amount: Decimal,
        shipping_amount: Decimal,
        discount_amount: Decimal,
        total_amount: Decimal,
    ) -> int:
        # jeden UPDATE, zeby ostatnie przeliczenie wygrywalo w calosci
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(
                subtotal=subtotal,
                tax_amount=tax_amount,
                shipping_amount=shipping_amount,
                discount_amount=discount_amount,
                total_amount=total_amount,
                version=CartModel.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        self._expire_cart(cart_id)
        return result.rowcount

    def set_applied_discount(self, cart_id: uuid.UUID, discount_id: uuid.UUID | None, code: str | None) -> None:
        self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(
                applied_discount_id=discount_id,
                applied_discount_code=code,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        self._expire_cart(cart_id)

    def clear_applied_discount(self, cart_id: uuid.UUID) -> None:
        self.set_applied_discount(cart_id, None, None)

    def update_cart_version(self, cart_id: uuid.UUID, old_version: int, new_data: dict) -> int:
        # Optimistic locking: update ... where id = ? and version = ?
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        self._expire_cart(cart_id)
        return result.rowcount

    def _expire_cart(self, cart_id: uuid.UUID) -> None:
        # obiekt w identity map po UPDATE z pominieciem ORM jest nieaktualny
        cart = self.db.identity_map.get(identity_key(CartModel, cart_id))
        if cart is not None:
            self.db.expire(cart)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
