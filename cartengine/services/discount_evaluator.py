# cartengine/services/discount_evaluator.py
"""
Czysta logika wyceny rabatu dla linii koszyka. Bez dostepu do bazy:
powiazania produkt -> kategorie dostarcza wywolujacy.

Linie gratisowe (is_gift) nie biora udzialu w wycenie.
Kwota nie jest zaokraglana, zaokragla DiscountSelector.
"""
import uuid
from decimal import Decimal
from typing import Collection, Iterable, Mapping

from cartengine.domain.discounts import (
    AllLines,
    BuyXGetYRule,
    BxgyBundleRule,
    CartLine,
    CategoryTargets,
    DiscountEvaluation,
    DiscountRule,
    DiscountType,
    ProductTargets,
    TargetScope,
    UnsupportedScope,
)
from cartengine.utils.money import ZERO

NOT_APPLICABLE = DiscountEvaluation(amount=ZERO, applicable=False)

CategoryLookup = Mapping[uuid.UUID, Collection[uuid.UUID]]


def qualifying_lines(
    lines: Iterable[CartLine],
    scope: TargetScope,
    categories_of: CategoryLookup | None = None,
) -> list[CartLine]:
    if isinstance(scope, AllLines):
        return list(lines)
    if isinstance(scope, ProductTargets):
        return [line for line in lines if line.product_id in scope.product_ids]
    if isinstance(scope, CategoryTargets):
        lookup = categories_of or {}
        return [
            line for line in lines
            if not scope.category_ids.isdisjoint(lookup.get(line.product_id, ()))
        ]
    if isinstance(scope, UnsupportedScope):
        return []
    raise TypeError(f"Unknown discount scope: {scope!r}")


def _paid(lines: Iterable[CartLine]) -> list[CartLine]:
    return [line for line in lines if not line.is_gift and line.quantity > 0 and line.unit_price > 0]


def _cheapest_units(lines: list[CartLine], free_units: int) -> Decimal:
    amount = ZERO
    for line in sorted(lines, key=lambda line: line.unit_price):
        if free_units <= 0:
            break
        take = min(free_units, line.quantity)
        amount += line.unit_price * take
        free_units -= take
    return amount


def _buy_x_get_y_amount(lines: list[CartLine], rule: BuyXGetYRule) -> Decimal:
    # najtansze jednostki sa darmowe
    total_qty = sum(line.quantity for line in lines)
    applications = total_qty // (rule.buy_qty + rule.get_qty)
    free_units = applications * rule.get_qty
    if free_units <= 0:
        return ZERO
    return _cheapest_units(lines, free_units)


def bundle_applications(lines: Iterable[CartLine], rule: BxgyBundleRule) -> int:
    """Ile razy koszyk spelnia liste buy (tylko linie platne)."""
    qty_by_product: dict[uuid.UUID, int] = {}
    for line in lines:
        if line.is_gift:
            continue
        qty_by_product[line.product_id] = qty_by_product.get(line.product_id, 0) + line.quantity
    return min(qty_by_product.get(b.product_id, 0) // b.quantity for b in rule.buy)


def _bxgy_bundle_amount(lines: list[CartLine], rule: BxgyBundleRule, discount_id: uuid.UUID) -> Decimal:
    applications = bundle_applications(lines, rule)
    if applications <= 0:
        return ZERO

    paid = _paid(lines)
    amount = ZERO
    for get in rule.get:
        # jednostki wydane juz jako gratis nie sa rabatowane drugi raz
        granted = sum(
            line.quantity for line in lines
            if line.is_gift and line.gift_discount_id == discount_id and line.product_id == get.product_id
        )
        free_units = get.quantity * applications - granted
        if free_units > 0:
            amount += _cheapest_units([line for line in paid if line.product_id == get.product_id], free_units)
    return amount


def evaluate_discount(
    lines: Iterable[CartLine],
    rule: DiscountRule,
    categories_of: CategoryLookup | None = None,
) -> DiscountEvaluation:
    if rule.metadata_error:
        return NOT_APPLICABLE

    lines = list(lines)
    metadata = rule.metadata

    # zestaw kup X dostan Y liczony po produktach z listy, bez zakresu i progu
    if metadata is not None and metadata.offer_kind == "bxgy_bundle":
        amount = _bxgy_bundle_amount(lines, metadata.bxgy_bundle, rule.id)
        return DiscountEvaluation(amount=amount, applicable=amount > 0)

    qualifying = _paid(qualifying_lines(lines, rule.scope, categories_of))

    q_subtotal = sum((line.unit_price * line.quantity for line in qualifying), ZERO)
    q_quantity = sum(line.quantity for line in qualifying)

    if q_subtotal <= 0:
        return NOT_APPLICABLE

    if rule.min_subtotal is not None and rule.min_subtotal > 0 and q_subtotal < rule.min_subtotal:
        return NOT_APPLICABLE

    if metadata is not None:
        required = metadata.bundle_min_quantity
        if required is not None and q_quantity < required:
            return NOT_APPLICABLE

    if rule.type == DiscountType.FREE_SHIPPING:
        return DiscountEvaluation(amount=ZERO, applicable=True, free_shipping=True)

    if metadata is not None and metadata.offer_kind == "bxgy_generic":
        amount = _buy_x_get_y_amount(qualifying, metadata.bxgy)
    elif rule.type == DiscountType.PERCENTAGE:
        amount = q_subtotal * rule.value / Decimal(100)
    elif rule.type == DiscountType.FIXED_AMOUNT:
        amount = min(rule.value, q_subtotal)
    else:
        amount = ZERO

    amount = max(amount, ZERO)
    return DiscountEvaluation(amount=amount, applicable=amount > 0)
