# cartengine/services/order_service.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cartengine.data.models.order import (
    OrderModel,
    OrderItemModel,
    OrderDiscountModel,
    OrderShippingAddressModel,
)
from cartengine.domain.access import check_owner
from cartengine.domain.discounts import DiscountSelection
from cartengine.domain.errors import (
    CartEngineError,
    ConcurrencyConflictError,
    EmptyCartError,
    NotFoundError,
)
from cartengine.domain.schemas import ShippingAddressIn, ShippingMethodIn
from cartengine.repos.cart_repo import CartRepo
from cartengine.repos.discount_repo import DiscountRepo
from cartengine.repos.order_repo import OrderRepo
from cartengine.repos.settings_repo import SettingsRepo
from cartengine.repos.user_repo import UserRepo
from cartengine.services.cart_totals import compute_total
from cartengine.services.discount_selector import (
    DiscountSelector,
    NO_DISCOUNT,
    usage_limit_reached,
)
from cartengine.services.inventory_service import InventoryService
from cartengine.services.notification_service import NotificationService
from cartengine.services.numbering_service import DocumentNumberService
from cartengine.utils.logging import get_logger
from cartengine.utils.money import ZERO, to_money

logger = get_logger(__name__)

ORDER_NUMBER_PREFIX = "ORD"

USAGE_NOT_RECORDED = "Discount usage could not be recorded"

_PAYMENT_METHODS = {
    "card": "credit_card",
    "credit_card": "credit_card",
    "debit": "debit_card",
    "debit_card": "debit_card",
    "paypal": "paypal",
    "stripe": "stripe",
    "cod": "cash_on_delivery",
    "cash_on_delivery": "cash_on_delivery",
    "bank": "bank_transfer",
    "bank_transfer": "bank_transfer",
}


def normalize_payment_method(value: str | None) -> str:
    key = (value or "").strip().lower()
    return _PAYMENT_METHODS.get(key, "credit_card")


@dataclass
class PlacedOrder:
    order_id: uuid.UUID
    order_number: str
    warnings: list[str] = field(default_factory=list)


class OrderService:
    """
    Serwis odpowiedzialny za domenę zamówień.
    Zamiana koszyka na zamowienie to jedna transakcja: rezerwacja stanow,
    zapis zamowienia, wyczyszczenie koszyka. Powiadomienia dopiero po commit.
    """

    def __init__(
        self,
        db: Session,
        numbering: DocumentNumberService | None = None,
        notifications: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.discounts = DiscountRepo(db)
        self.settings = SettingsRepo(db)
        self.users = UserRepo(db)
        self.selector = DiscountSelector(db)
        self.inventory = InventoryService(db)
        self.numbering = numbering or DocumentNumberService()
        self.notification_service = notifications or NotificationService()

    def place_order(
        self,
        cart_id: uuid.UUID,
        shipping_address: ShippingAddressIn | None,
        shipping_method: ShippingMethodIn,
        payment_method: str,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> PlacedOrder:
        """
        Use Case: Zlozenie zamowienia z koszyka.

        0. Koszyk uzytkownika wymaga jego user_id, koszyk goscia tej samej sesji
        1. Ponowny wybor rabatu, limit sprawdzany na zablokowanym wierszu
           (wyczerpany -> bez rabatu)
        2. Sumy: total = subtotal + tax + shipping - discount
        3. Rezerwacja stanow dla kazdej pozycji
        4. Zamowienie + adres + pozycje (+ snapshot rabatu)
        5. Koszyk wyczyszczony i converted, z kontrola wersji
        6. Commit, potem powiadomienia (async)
        """
        warnings: list[str] = []

        try:
            cart = self.carts.get_cart(cart_id)
            if not cart or cart.status != "active":
                raise NotFoundError("Cart not found")
            check_owner(cart, user_id, session_id, "cart")

            items = self.carts.get_cart_items(cart.id)
            if not items:
                raise EmptyCartError()

            expected_version = cart.version

            selection = self.selector.select_for_cart(cart, items)
            if selection.discount_id is not None:
                # FOR UPDATE: rownolegle checkouty z tym samym rabatem czekaja tutaj
                discount = self.discounts.lock_discount(selection.discount_id)
                if discount is None or usage_limit_reached(discount):
                    logger.info(f"Cart {cart.id}: discount {selection.discount_id} usage limit reached, dropping it")
                    selection = NO_DISCOUNT

            subtotal = to_money(sum((to_money(i.total_price) for i in items), ZERO))
            tax_amount = to_money(cart.tax_amount)
            shipping_amount = ZERO if selection.free_shipping else to_money(shipping_method.price)
            discount_amount = selection.amount
            total_amount = compute_total(subtotal, tax_amount, shipping_amount, discount_amount)

            self.inventory.reserve_lines(items)

            order = self.repo.create_order(
                OrderModel(
                    order_number=self.numbering.next_document_number(ORDER_NUMBER_PREFIX),
                    cart_id=cart.id,
                    user_id=cart.user_id if cart.user_id is not None else user_id,
                    session_id=cart.session_id if cart.user_id is None else None,
                    status="pending",
                    payment_status="pending",
                    payment_method=normalize_payment_method(payment_method),
                    shipping_method_id=shipping_method.id,
                    shipping_method_name=shipping_method.name,
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    shipping_amount=shipping_amount,
                    discount_amount=discount_amount,
                    total_amount=total_amount,
                    currency=self.settings.get_currency(),
                    customer_email=customer_email,
                    customer_phone=customer_phone,
                )
            )
            order_id, order_number = order.id, order.order_number
            cart_owner = cart.user_id

            if shipping_address is not None:
                self.repo.add_shipping_address(
                    OrderShippingAddressModel(order_id=order_id, **shipping_address.model_dump())
                )

            # ceny z koszyka 1:1, bez ponownego pobierania z katalogu
            for item in items:
                self.repo.add_item(
                    OrderItemModel(
                        order_id=order_id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        product_name=item.product_name,
                        variant_name=item.variant_name,
                        sku=item.sku,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        total_price=item.total_price,
                        is_gift=bool(item.is_gift),
                    )
                )

            if discount_amount > 0:
                self._record_discount(order_id, selection, warnings)

            self._convert_cart(cart.id, expected_version)

            self.carts.commit()

        except CartEngineError:
            self.carts.rollback()
            raise
        except Exception as e:
            self.carts.rollback()
            logger.error(f"Blad podczas skladania zamowienia z koszyka {cart_id}: {e}")
            raise

        logger.info(f"Order {order_number} ({order_id}) created from cart {cart_id}, total={total_amount}")

        self._notify(order_id, order_number, user_id if user_id is not None else cart_owner)

        return PlacedOrder(order_id=order_id, order_number=order_number, warnings=warnings)

    def _record_discount(self, order_id: uuid.UUID, selection: DiscountSelection, warnings: list[str]) -> None:
        # SAVEPOINT: blad tutaj nie przerywa zamowienia
        try:
            with self.db.begin_nested():
                self.repo.add_discount(
                    OrderDiscountModel(
                        order_id=order_id,
                        discount_id=selection.discount_id,
                        code=selection.code,
                        amount=selection.amount,
                    )
                )
                if selection.discount_id is not None and self.discounts.increment_usage(selection.discount_id) == 0:
                    raise ConcurrencyConflictError("Discount usage limit reached")
        except (SQLAlchemyError, ConcurrencyConflictError) as e:
            logger.warning(f"Order {order_id}: failed to record discount {selection.discount_id}: {e}")
            warnings.append(USAGE_NOT_RECORDED)

    def _convert_cart(self, cart_id: uuid.UUID, expected_version: int) -> None:
        self.carts.delete_cart_items(cart_id)

        updated = self.carts.update_cart_version(
            cart_id,
            expected_version,
            {
                "subtotal": ZERO,
                "tax_amount": ZERO,
                "shipping_amount": ZERO,
                "discount_amount": ZERO,
                "total_amount": ZERO,
                "applied_discount_id": None,
                "applied_discount_code": None,
                "gift_suppressions": None,
                "status": "converted",
                "converted_at": datetime.now(timezone.utc),
                "updated_at": datetime.now(timezone.utc),
                "version": expected_version + 1,
            },
        )
        if updated == 0:
            logger.warning(f"Cart {cart_id} changed during checkout (expected version {expected_version})")
            raise ConcurrencyConflictError("Cart was modified during checkout, please try again")

    def _notify(self, order_id: uuid.UUID, order_number: str, user_id: uuid.UUID | None) -> None:
        # kazde powiadomienie osobno: blad u adminow nie blokuje klienta
        metadata = {"order_id": str(order_id), "order_number": order_number}
        try:
            self.notification_service.notify(
                self.users.list_admin_ids(),
                "order_created",
                "New order placed",
                f"Order {order_number} has been placed",
                action_url="/dashboard/orders",
                metadata=metadata,
            )
        except Exception as e:
            logger.error(f"Failed to notify admins about order {order_number}: {e}")

        if user_id is None:
            return
        try:
            if not self.users.is_admin(user_id):
                self.notification_service.notify(
                    [user_id],
                    "order_created",
                    "Order placed",
                    f"Your order {order_number} has been placed",
                    action_url=f"/account/orders/{order_id}",
                    metadata=metadata,
                )
        except Exception as e:
            logger.error(f"Failed to notify customer {user_id} about order {order_number}: {e}")

    def get_order(
        self,
        order_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
        session_id: str | None = None,
    ) -> OrderModel:
        """
        Use Case: Pobranie zamówienia (Query).
        Zamowienie uzytkownika widzi tylko on, zamowienie goscia tylko jego sesja.
        """
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        check_owner(order, user_id, session_id, "order")
        return order
