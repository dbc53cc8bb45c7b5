# cartengine/services/cart_totals.py
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from cartengine.data.models.cart import CartModel
from cartengine.domain.discounts import DiscountSelection
from cartengine.domain.errors import NotFoundError
from cartengine.repos.cart_repo import CartRepo
from cartengine.services.discount_selector import DiscountSelector
from cartengine.services.gift_service import BundleGiftService
from cartengine.utils.logging import get_logger
from cartengine.utils.money import ZERO, to_money

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    selection: DiscountSelection


def compute_total(subtotal, tax_amount, shipping_amount, discount_amount) -> Decimal:
    return to_money(subtotal + tax_amount + shipping_amount - discount_amount)


class CartTotalsCalculator:
    """
    Przelicza subtotal / tax / shipping / discount / total koszyka.
    recalculate() po kazdej komendzie: gratisy, wybor rabatu i zapis jednym
    UPDATE (idempotentne). compute() tylko liczy, bez zapisu.
    """

    def __init__(self, db: Session, selector: DiscountSelector | None = None):
        self.repo = CartRepo(db)
        self.selector = selector or DiscountSelector(db)
        self.gifts = BundleGiftService(db)

    def _require_cart(self, cart_id) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise NotFoundError("Cart not found")
        return cart

    def compute(self, cart_id, clear_invalid: bool = False) -> CartTotals:
        cart = self._require_cart(cart_id)

        items = self.repo.get_cart_items(cart.id)
        subtotal = to_money(sum((to_money(i.total_price) for i in items), ZERO))

        # tax i shipping naliczane przy checkout, tu tylko przenoszone
        tax_amount = to_money(cart.tax_amount)
        shipping_amount = to_money(cart.shipping_amount)

        selection = self.selector.select_for_cart(cart, items, clear_invalid=clear_invalid)
        discount_amount = selection.amount

        return CartTotals(
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total_amount=compute_total(subtotal, tax_amount, shipping_amount, discount_amount),
            selection=selection,
        )

    def recalculate(self, cart_id) -> CartTotals:
        cart = self._require_cart(cart_id)
        self.gifts.sync(cart)

        totals = self.compute(cart.id, clear_invalid=True)

        self.repo.update_totals(
            cart.id,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            shipping_amount=totals.shipping_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
        )

        logger.info(
            f"Cart {cart.id} totals: subtotal={totals.subtotal} "
            f"discount={totals.discount_amount} total={totals.total_amount}"
        )
        return totals
