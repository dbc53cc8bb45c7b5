# cartengine/services/discount_selector.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from cartengine.data.models.cart import CartModel
from cartengine.data.models.cart_item import CartItemModel
from cartengine.data.models.discount import DiscountModel
from cartengine.domain.discounts import (
    CartLine,
    CategoryTargets,
    DiscountEvaluation,
    DiscountRule,
    DiscountScope,
    DiscountSelection,
    DiscountType,
    normalize_code,
)
from cartengine.repos.cart_repo import CartRepo
from cartengine.repos.discount_repo import DiscountRepo
from cartengine.services.discount_evaluator import evaluate_discount
from cartengine.utils.logging import get_logger
from cartengine.utils.money import ZERO, to_money

logger = get_logger(__name__)

NO_DISCOUNT = DiscountSelection(amount=ZERO)


def _as_utc(value: datetime | None) -> datetime | None:
    # sqlite gubi strefe czasowa
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_active_now(discount: DiscountModel, now: datetime) -> bool:
    if discount.status != "active":
        return False
    starts_at = _as_utc(discount.starts_at)
    ends_at = _as_utc(discount.ends_at)
    if starts_at is not None and starts_at > now:
        return False
    if ends_at is not None and ends_at < now:
        return False
    return True


def usage_limit_reached(discount: DiscountModel) -> bool:
    if discount.usage_limit is None:
        return False
    return int(discount.usage_count or 0) >= int(discount.usage_limit)


def to_lines(items: Iterable[CartItemModel]) -> list[CartLine]:
    return [
        CartLine(
            product_id=item.product_id,
            quantity=int(item.quantity),
            unit_price=Decimal(str(item.unit_price)),
            is_gift=bool(item.is_gift),
            gift_discount_id=item.gift_discount_id,
        )
        for item in items
    ]


class DiscountSelector:
    """
    Wybiera jeden rabat dla koszyka (bez laczenia rabatow):
    - zastosowany kod ma pierwszenstwo, jesli nadal jest wazny
    - w przeciwnym razie automatyczny rabat o najwyzszej kwocie
    """

    def __init__(self, db: Session):
        self.discounts = DiscountRepo(db)
        self.carts = CartRepo(db)

    def rejection_reason(self, discount: DiscountModel | None, now: datetime | None = None) -> str | None:
        """Powod, dla ktorego rabat nie moze byc zastosowany jako kod, albo None."""
        now = now or datetime.now(timezone.utc)
        if discount is None:
            return "Invalid discount code"
        if discount.is_automatic:
            return "This discount is automatic and can't be applied as a code"
        if discount.scope == DiscountScope.COLLECTIONS.value:
            return "This discount is limited to collections and can't be applied yet"
        if not is_active_now(discount, now):
            return "This discount is not active"
        if usage_limit_reached(discount):
            return "This discount has reached its usage limit"
        return None

    def evaluate(self, rule: DiscountRule, lines: list[CartLine]) -> DiscountEvaluation:
        categories_of = None
        if isinstance(rule.scope, CategoryTargets):
            categories_of = self.discounts.product_category_map(line.product_id for line in lines)
        return evaluate_discount(lines, rule, categories_of)

    def resolve_applied(self, cart: CartModel) -> DiscountModel | None:
        # kod ma pierwszenstwo przed id
        if cart.applied_discount_code:
            return self.discounts.get_by_code(cart.applied_discount_code)
        if cart.applied_discount_id:
            return self.discounts.get_discount(cart.applied_discount_id)
        return None

    def select_for_cart(
        self,
        cart: CartModel,
        items: list[CartItemModel] | None = None,
        now: datetime | None = None,
        clear_invalid: bool = True,
    ) -> DiscountSelection:
        """clear_invalid=False: bez zapisu, np. przy odczycie koszyka."""
        now = now or datetime.now(timezone.utc)
        if items is None:
            items = self.carts.get_cart_items(cart.id)
        lines = to_lines(items)

        if cart.applied_discount_code or cart.applied_discount_id:
            discount = self.resolve_applied(cart)
            reason = self.rejection_reason(discount, now)
            if reason is None:
                if not lines:
                    return NO_DISCOUNT
                return self._selection(discount, self.evaluate(self.discounts.load_rule(discount), lines))

            if clear_invalid:
                logger.info(f"Cart {cart.id}: dropping applied discount ({reason})")
                self.carts.clear_applied_discount(cart.id)

        if not lines:
            return NO_DISCOUNT
        return self.best_automatic(lines, now)

    def best_automatic(self, lines: list[CartLine], now: datetime) -> DiscountSelection:
        best: DiscountModel | None = None
        best_eval: DiscountEvaluation | None = None
        best_amount = ZERO

        for discount in self.discounts.list_active_automatic(now):
            if not is_active_now(discount, now):
                continue
            rule = self.discounts.load_rule(discount)
            if rule.metadata is not None and rule.metadata.is_price_offer:
                continue
            evaluation = self.evaluate(rule, lines)
            amount = to_money(evaluation.amount)
            # remis -> zostaje pierwszy znaleziony
            if amount > best_amount:
                best, best_eval, best_amount = discount, evaluation, amount

        if best is None:
            return NO_DISCOUNT
        return self._selection(best, best_eval)

    @staticmethod
    def _selection(discount: DiscountModel, evaluation: DiscountEvaluation) -> DiscountSelection:
        return DiscountSelection(
            amount=to_money(evaluation.amount),
            discount_id=discount.id,
            code=normalize_code(discount.code) if discount.code else None,
            type=DiscountType(discount.type),
            value=Decimal(str(discount.value)),
            is_automatic=bool(discount.is_automatic),
            free_shipping=evaluation.free_shipping,
        )
