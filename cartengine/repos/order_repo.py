# cartengine/repos/order_repo.py
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from cartengine.data.models.order import (
    OrderModel,
    OrderItemModel,
    OrderDiscountModel,
    OrderShippingAddressModel,
)


class OrderRepo:
    """Zapisy w ramach transakcji wywolujacego, bez commit."""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        return item

    def add_shipping_address(self, address: OrderShippingAddressModel) -> OrderShippingAddressModel:
        self.db.add(address)
        return address

    def add_discount(self, snapshot: OrderDiscountModel) -> OrderDiscountModel:
        self.db.add(snapshot)
        self.db.flush()
        return snapshot

    def get_order(self, order_id: uuid.UUID) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(
                selectinload(OrderModel.items),
                selectinload(OrderModel.discounts),
                selectinload(OrderModel.shipping_address),
            )
        ).scalar_one_or_none()
