import itertools
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine, event, insert, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cartengine.data.database import Base
from cartengine.data.models import (
    CartItemModel,
    CartModel,
    DiscountModel,
    InventoryModel,
    ProductModel,
    ProductVariantModel,
    SettingModel,
    UserModel,
    discount_categories,
    discount_products,
    product_categories,
)
from cartengine.domain.errors import NotFoundError
from cartengine.utils.money import to_money


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite sam zarzadza BEGIN, bez tego SAVEPOINT nie dziala
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """Baza w pliku, wspolna dla wielu watkow (jedna sesja na watek)."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cartengine.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_size=8,
        max_overflow=8,
    )

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    # IMMEDIATE: blokada zapisu od poczatku transakcji, SQLite nie ma FOR UPDATE
    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class Factory:
    def __init__(self, db):
        self.db = db
        self._clock = itertools.count()

    def _created_at(self) -> datetime:
        # rosnace created_at, zeby kolejnosc byla deterministyczna
        return datetime(2026, 1, 1, tzinfo=timezone.utc).replace(microsecond=next(self._clock))

    def product(self, name="Widget", price="10.00", sku=None, categories=()):
        product = ProductModel(name=name, price=Decimal(price), sku=sku or name.upper())
        self.db.add(product)
        self.db.flush()
        for category_id in categories:
            self.db.execute(insert(product_categories).values(product_id=product.id, category_id=category_id))
        self.db.commit()
        return product

    def variant(self, product, price="10.00", stock=10, reserved=0, name="Default", active=True):
        variant = ProductVariantModel(
            product_id=product.id,
            name=name,
            sku=f"{product.sku}-{name}".upper(),
            price=Decimal(price),
            stock_quantity=stock,
            reserved_quantity=reserved,
            is_active=active,
        )
        self.db.add(variant)
        self.db.commit()
        return variant

    def pooled(self, product, available, location=None, updated_at=None):
        row = InventoryModel(
            product_id=product.id,
            location=location,
            quantity=available,
            reserved_quantity=0,
            available_quantity=available,
            updated_at=updated_at or datetime.now(timezone.utc),
        )
        self.db.add(row)
        self.db.commit()
        return row

    def discount(
        self,
        name="Promo",
        code=None,
        type="percentage",
        value="10",
        scope="all",
        status="active",
        is_automatic=False,
        min_subtotal=None,
        usage_limit=None,
        usage_count=0,
        starts_at=None,
        ends_at=None,
        meta=None,
        products=(),
        categories=(),
    ):
        discount = DiscountModel(
            name=name,
            code=code,
            type=type,
            value=Decimal(value),
            scope=scope,
            status=status,
            is_automatic=is_automatic,
            min_subtotal=Decimal(min_subtotal) if min_subtotal is not None else None,
            usage_limit=usage_limit,
            usage_count=usage_count,
            starts_at=starts_at,
            ends_at=ends_at,
            meta=meta,
            created_at=self._created_at(),
        )
        self.db.add(discount)
        self.db.flush()
        for product in products:
            self.db.execute(insert(discount_products).values(discount_id=discount.id, product_id=product.id))
        for category_id in categories:
            self.db.execute(insert(discount_categories).values(discount_id=discount.id, category_id=category_id))
        self.db.commit()
        return discount

    def cart(self, user_id=None, session_id="guest-session", status="active", **fields):
        cart = CartModel(
            user_id=user_id,
            session_id=None if user_id else session_id,
            status=status,
            currency="CAD",
            version=1,
            **fields,
        )
        self.db.add(cart)
        self.db.commit()
        return cart

    def line(self, cart, product, quantity=1, variant=None, unit_price=None, is_gift=False, gift_discount_id=None):
        price = to_money(unit_price if unit_price is not None else (variant.price if variant else product.price))
        item = CartItemModel(
            cart_id=cart.id,
            product_id=product.id,
            variant_id=variant.id if variant else None,
            product_name=product.name,
            variant_name=variant.name if variant else None,
            sku=variant.sku if variant else product.sku,
            quantity=quantity,
            unit_price=price,
            total_price=to_money(price * quantity),
            is_gift=is_gift,
            gift_discount_id=gift_discount_id,
            created_at=self._created_at(),
        )
        self.db.add(item)
        self.db.commit()
        return item

    def user(self, name="Jan", is_admin=False, is_active=True):
        user = UserModel(name=name, email=f"{name.lower()}@example.com", is_admin=is_admin, is_active=is_active)
        self.db.add(user)
        self.db.commit()
        return user

    def setting(self, key, value):
        self.db.merge(SettingModel(key=key, value=value))
        self.db.commit()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def file_session_factory(file_engine):
    return sessionmaker(bind=file_engine, expire_on_commit=False)


@pytest.fixture
def file_factory(file_session_factory):
    session = file_session_factory()
    yield Factory(session)
    session.close()


@pytest.fixture
def product_client(db):
    """Katalog (mock) czytany z tej samej bazy co testy."""
    client = MagicMock()

    def fetch(product_id):
        product = db.get(ProductModel, uuid.UUID(str(product_id)))
        if product is None:
            raise NotFoundError("Product not found")
        return {
            "id": str(product.id),
            "name": product.name,
            "sku": product.sku,
            "price": str(product.price),
            "variants": [
                {"id": str(v.id), "name": v.name, "sku": v.sku, "price": str(v.price)}
                for v in db.execute(
                    select(ProductVariantModel).where(ProductVariantModel.product_id == product.id)
                ).scalars()
            ],
            "categories": [],
        }

    client.fetch_product.side_effect = fetch
    return client


@pytest.fixture
def numbering():
    counter = itertools.count(1)
    service = MagicMock()
    service.next_document_number.side_effect = lambda prefix: f"{prefix}-26-10-{next(counter):06d}"
    return service


@pytest.fixture
def notifications():
    return MagicMock()
