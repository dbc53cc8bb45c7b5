# cartengine/services/cart_service.py
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.orm import Session

from cartengine.data.models.cart import CartModel
from cartengine.data.models.cart_item import CartItemModel
from cartengine.domain.access import check_owner
from cartengine.domain.discounts import normalize_code
from cartengine.domain.errors import (
    AccessDeniedError,
    CartEngineError,
    ConcurrencyConflictError,
    InapplicableDiscountError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from cartengine.repos.cart_repo import CartRepo
from cartengine.repos.discount_repo import DiscountRepo
from cartengine.repos.settings_repo import SettingsRepo
from cartengine.services.cart_totals import CartTotals, CartTotalsCalculator
from cartengine.services.discount_selector import DiscountSelector, to_lines
from cartengine.services.inventory_service import InventoryService
from cartengine.services.product_client import ProductClient
from cartengine.utils.logging import get_logger
from cartengine.utils.money import to_money

logger = get_logger(__name__)


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity", "Quantity must be greater than 0")
    return quantity


class CartService:
    """
    Use case'y koszyka. Kazda komenda konczy sie przeliczeniem sum
    (CartTotalsCalculator) i commitem, blad -> rollback.
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
    ):
        self.repo = CartRepo(db)
        self.discounts = DiscountRepo(db)
        self.settings = SettingsRepo(db)
        self.inventory = InventoryService(db)
        self.selector = DiscountSelector(db)
        self.totals = CartTotalsCalculator(db, self.selector)
        self.gifts = self.totals.gifts
        self.product_client = product_client

    @contextmanager
    def _transaction(self, action: str):
        try:
            yield
            self.repo.commit()
        except CartEngineError:
            self.repo.rollback()
            raise
        except Exception as e:
            self.repo.rollback()
            logger.error(f"Blad podczas {action}: {e}")
            raise

    def _require_cart(self, cart_id: uuid.UUID) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise NotFoundError("Cart not found")
        return cart

    def _require_owned_cart(self, cart_id: uuid.UUID, user_id: uuid.UUID | None, session_id: str | None) -> CartModel:
        cart = self._require_cart(cart_id)
        check_owner(cart, user_id, session_id, "cart")
        return cart

    def _require_active_cart(self, cart_id: uuid.UUID, user_id: uuid.UUID | None, session_id: str | None) -> CartModel:
        cart = self._require_owned_cart(cart_id, user_id, session_id)
        if cart.status != "active":
            raise ValidationError("cart_id", "Cart can't be modified")
        return cart

    def _require_item(self, item_id: uuid.UUID) -> CartItemModel:
        item = self.repo.get_cart_item(item_id)
        if not item:
            raise NotFoundError("Cart item not found")
        return item

    #query
    def get_cart(self, cart_id: uuid.UUID, user_id: uuid.UUID | None = None, session_id: str | None = None) -> Dict[str, Any]:
        # odczyt bez zapisu: nie zmienia wersji koszyka
        cart = self._require_owned_cart(cart_id, user_id, session_id)
        return self._view(cart.id, self.totals.compute(cart.id))

    #commands
    def get_or_create_cart(self, user_id: uuid.UUID | None = None, session_id: str | None = None) -> Dict[str, Any]:
        if user_id is None and not session_id:
            raise ValidationError("user_id", "Either user_id or session_id is required")

        with self._transaction("tworzenia koszyka"):
            cart = self._get_or_create(user_id, session_id)
        return self._view(cart.id, self.totals.compute(cart.id))

    def _get_or_create(self, user_id: uuid.UUID | None, session_id: str | None) -> CartModel:
        existing = self.repo.get_active_cart(user_id=user_id, session_id=session_id)
        if existing:
            return existing

        created = self.repo.create_cart(
            CartModel(
                user_id=user_id,
                session_id=None if user_id is not None else session_id,
                status="active",
                currency=self.settings.get_currency(),
                version=1,
            )
        )
        logger.info(f"Utworzono nowy koszyk {created.id} (user={user_id}, session={session_id})")
        return created

    def add_item(
        self,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None = None,
        quantity: int = 1,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> Dict[str, Any]:
        quantity = _validate_quantity(quantity)

        with self._transaction("dodawania produktu"):
            cart = self._require_active_cart(cart_id, user_id, session_id)

            logger.info(f"Pobieranie danych produktu {product_id} z product-service")
            pdata = self.product_client.fetch_product(product_id)

            product_name = pdata["name"]
            sku = pdata.get("sku") or str(product_id)
            unit_price = to_money(pdata["price"])
            variant_name = None

            if variant_id is not None:
                variant = next(
                    (v for v in pdata.get("variants") or [] if str(v.get("id")) == str(variant_id)),
                    None,
                )
                if variant is None:
                    raise NotFoundError("Variant not found")
                sku = variant.get("sku") or sku
                unit_price = to_money(variant["price"])
                variant_name = variant.get("name")

            existing_item = self.repo.find_line(cart.id, product_id, variant_id)
            requested = quantity + (existing_item.quantity if existing_item else 0)

            if self.inventory.available_for(product_id, variant_id) < requested:
                raise InsufficientStockError(product_name)

            if existing_item:
                logger.info(
                    f"Produkt {product_id} już jest w koszyku, zwiekszam ilosc "
                    f"z {existing_item.quantity} do {requested}"
                )
                existing_item.quantity = requested
                existing_item.unit_price = unit_price  # update ceny
                existing_item.total_price = to_money(unit_price * requested)
                self.repo.add_cart_item(existing_item)
            else:
                logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        variant_id=variant_id,
                        product_name=product_name,
                        variant_name=variant_name,
                        sku=sku,
                        quantity=quantity,
                        unit_price=unit_price,
                        total_price=to_money(unit_price * quantity),
                        is_gift=False,
                    )
                )

            totals = self.totals.recalculate(cart.id)

        return self._view(cart.id, totals)

    def update_item_quantity(
        self,
        item_id: uuid.UUID,
        quantity: int,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> uuid.UUID:
        quantity = _validate_quantity(quantity)

        with self._transaction("zmiany ilosci"):
            item = self._require_item(item_id)
            cart = self._require_active_cart(item.cart_id, user_id, session_id)

            if item.is_gift:
                raise ValidationError("quantity", "Gift quantity can't be changed")

            if quantity > item.quantity and self.inventory.available_for(item.product_id, item.variant_id) < quantity:
                raise InsufficientStockError(item.product_name)

            item.quantity = quantity
            item.total_price = to_money(Decimal(str(item.unit_price)) * quantity)
            self.repo.add_cart_item(item)
            self.totals.recalculate(cart.id)

        logger.info(f"Pozycja {item_id} w koszyku {cart.id}: ilosc {quantity}")
        return cart.id

    def remove_item(
        self,
        item_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> uuid.UUID:
        with self._transaction("usuwania produktu"):
            item = self._require_item(item_id)
            cart = self._require_active_cart(item.cart_id, user_id, session_id)

            # usuniety gratis nie wraca przy kolejnym przeliczeniu
            if item.is_gift and item.gift_discount_id is not None:
                self.gifts.suppress(cart, item)

            self.repo.delete_cart_item(item)
            self.totals.recalculate(cart.id)

        logger.info(f"Pozycja {item_id} usunieta z koszyka {cart.id}")
        return cart.id

    def apply_discount(
        self,
        cart_id: uuid.UUID,
        code: str,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> Dict[str, Any]:
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError("code", "Discount code is required")

        with self._transaction("stosowania rabatu"):
            cart = self._require_active_cart(cart_id, user_id, session_id)

            discount = self.discounts.get_by_code(normalized)
            reason = self.selector.rejection_reason(discount)
            if reason:
                raise InapplicableDiscountError(reason)

            items = self.repo.get_cart_items(cart.id)
            if not items:
                raise InapplicableDiscountError("Cart is empty")

            evaluation = self.selector.evaluate(self.discounts.load_rule(discount), to_lines(items))
            if not evaluation.applicable:
                raise InapplicableDiscountError("This discount is not applicable to your cart")

            self.repo.set_applied_discount(cart.id, discount.id, normalized)
            totals = self.totals.recalculate(cart.id)

        logger.info(f"Kod {normalized} zastosowany w koszyku {cart.id}")
        return self._view(cart.id, totals)

    def clear_discount(
        self,
        cart_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> Dict[str, Any]:
        with self._transaction("usuwania rabatu"):
            cart = self._require_owned_cart(cart_id, user_id, session_id)
            self.repo.clear_applied_discount(cart.id)
            totals = self.totals.recalculate(cart.id)
        return self._view(cart.id, totals)

    def clear_cart(
        self,
        cart_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> Dict[str, Any]:
        with self._transaction("czyszczenia koszyka"):
            cart = self._require_owned_cart(cart_id, user_id, session_id)
            self.repo.delete_cart_items(cart.id)
            totals = self.totals.recalculate(cart.id)
        return self._view(cart.id, totals)

    def merge_cart(self, guest_cart_id: uuid.UUID, user_id: uuid.UUID, session_id: str | None = None) -> Dict[str, Any]:
        """
        Przenosi pozycje koszyka goscia do aktywnego koszyka uzytkownika.
        Koszyk goscia musi nalezec do sesji wywolujacego. Zostaje (status
        abandoned), nie jest usuwany. Gratisy nie sa przenoszone, wyliczy je
        przeliczenie koszyka uzytkownika.
        """
        with self._transaction("laczenia koszykow"):
            user_cart = self._get_or_create(user_id, None)
            guest = self.repo.get_cart(guest_cart_id)

            if guest is not None and guest.user_id is None and guest.session_id != session_id:
                raise AccessDeniedError("Access to this cart is denied")

            if (
                guest is None
                or guest.id == user_cart.id
                or guest.status != "active"
                or (guest.user_id is not None and guest.user_id != user_id)
            ):
                totals = self.totals.recalculate(user_cart.id)
                return self._view(user_cart.id, totals)

            moved = 0
            for item in self.repo.get_cart_items(guest.id):
                if item.is_gift:
                    continue
                existing = self.repo.find_line(user_cart.id, item.product_id, item.variant_id)
                if existing:
                    existing.quantity += item.quantity
                    existing.unit_price = item.unit_price
                    existing.total_price = to_money(Decimal(str(item.unit_price)) * existing.quantity)
                    self.repo.add_cart_item(existing)
                else:
                    self.repo.add_cart_item(
                        CartItemModel(
                            cart_id=user_cart.id,
                            product_id=item.product_id,
                            variant_id=item.variant_id,
                            product_name=item.product_name,
                            variant_name=item.variant_name,
                            sku=item.sku,
                            quantity=item.quantity,
                            unit_price=item.unit_price,
                            total_price=item.total_price,
                            is_gift=False,
                        )
                    )
                moved += 1

            guest_id, guest_version = guest.id, guest.version
            self.repo.delete_cart_items(guest_id)
            updated = self.repo.update_cart_version(
                guest_id,
                guest_version,
                {
                    "status": "abandoned",
                    "abandoned_at": datetime.now(timezone.utc),
                    "version": guest_version + 1,
                },
            )
            if updated == 0:
                logger.warning(f"Koszyk {guest_id} zmieniony w trakcie laczenia (wersja {guest_version})")
                raise ConcurrencyConflictError("Cart was modified during merge, please try again")

            self.totals.recalculate(guest_id)
            totals = self.totals.recalculate(user_cart.id)

        logger.info(f"Polaczono koszyk {guest_cart_id} z koszykiem {user_cart.id} ({moved} pozycji)")
        return self._view(user_cart.id, totals)

    def _view(self, cart_id: uuid.UUID, totals: CartTotals) -> Dict[str, Any]:
        cart = self._require_cart(cart_id)
        items = self.repo.get_cart_items(cart_id)
        selection = totals.selection

        applied = None
        if selection.applied and (selection.amount > 0 or selection.free_shipping):
            applied = {
                "id": selection.discount_id,
                "code": selection.code,
                "type": selection.type.value,
                "value": selection.value,
                "amount": selection.amount,
                "is_automatic": selection.is_automatic,
                "free_shipping": selection.free_shipping,
            }

        return {
            "id": cart.id,
            "user_id": cart.user_id,
            "session_id": cart.session_id,
            "status": cart.status,
            "currency": cart.currency,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "variant_id": i.variant_id,
                    "product_name": i.product_name,
                    "variant_name": i.variant_name,
                    "sku": i.sku,
                    "quantity": i.quantity,
                    "unit_price": to_money(i.unit_price),
                    "total_price": to_money(i.total_price),
                    "is_gift": bool(i.is_gift),
                }
                for i in items
            ],
            "item_count": sum(i.quantity for i in items),
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "shipping_amount": totals.shipping_amount,
            "discount_amount": totals.discount_amount,
            "total_amount": totals.total_amount,
            "applied_discount": applied,
        }
