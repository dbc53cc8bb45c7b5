"""Tests for cartengine.services.discount_evaluator."""

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError

from cartengine.domain.discounts import (
    AllLines,
    CartLine,
    CategoryTargets,
    DiscountMetadata,
    DiscountRule,
    DiscountScope,
    DiscountType,
    ProductTargets,
    UnsupportedScope,
    normalize_code,
)
from cartengine.services.discount_evaluator import bundle_applications, evaluate_discount, qualifying_lines

P1 = uuid.uuid4()
P2 = uuid.uuid4()
CAT = uuid.uuid4()


def rule(type=DiscountType.PERCENTAGE, value="10", scope=None, min_subtotal=None, metadata=None, metadata_error=None):
    return DiscountRule(
        id=uuid.uuid4(),
        name="Promo",
        code=None,
        type=type,
        scope=scope if scope is not None else AllLines(),
        value=Decimal(value),
        min_subtotal=Decimal(min_subtotal) if min_subtotal is not None else None,
        metadata=metadata,
        metadata_error=metadata_error,
    )


def line(product_id, quantity, price, is_gift=False, gift_discount_id=None):
    return CartLine(
        product_id=product_id,
        quantity=quantity,
        unit_price=Decimal(price),
        is_gift=is_gift,
        gift_discount_id=gift_discount_id,
    )


# ------------------------------------------------------------------ #
#  normalize_code                                                      #
# ------------------------------------------------------------------ #


class TestNormalizeCode:
    def test_trims_and_uppercases(self):
        assert normalize_code("  save10 ") == "SAVE10"

    def test_collapses_internal_whitespace(self):
        assert normalize_code("summer \t  sale") == "SUMMER SALE"

    def test_none_is_empty(self):
        assert normalize_code(None) == ""


# ------------------------------------------------------------------ #
#  qualifying_lines                                                    #
# ------------------------------------------------------------------ #


class TestQualifyingLines:
    def test_all_lines(self):
        lines = [line(P1, 1, "5"), line(P2, 1, "5")]
        assert qualifying_lines(lines, AllLines()) == lines

    def test_product_targets(self):
        lines = [line(P1, 1, "5"), line(P2, 1, "5")]
        assert qualifying_lines(lines, ProductTargets(frozenset({P2}))) == [lines[1]]

    def test_category_targets_use_lookup(self):
        lines = [line(P1, 1, "5"), line(P2, 1, "5")]
        result = qualifying_lines(lines, CategoryTargets(frozenset({CAT})), {P1: {CAT}})
        assert result == [lines[0]]

    def test_category_targets_without_lookup(self):
        assert qualifying_lines([line(P1, 1, "5")], CategoryTargets(frozenset({CAT}))) == []

    def test_unsupported_scope_has_no_lines(self):
        assert qualifying_lines([line(P1, 1, "5")], UnsupportedScope(DiscountScope.COLLECTIONS)) == []


# ------------------------------------------------------------------ #
#  evaluate_discount                                                   #
# ------------------------------------------------------------------ #


class TestEvaluateDiscount:
    def test_percentage(self):
        result = evaluate_discount([line(P1, 2, "50.00")], rule(value="10"))
        assert result.amount == Decimal("10.00")
        assert result.applicable
        assert not result.free_shipping

    def test_fixed_amount_capped_at_subtotal(self):
        result = evaluate_discount([line(P1, 1, "15.00")], rule(type=DiscountType.FIXED_AMOUNT, value="20"))
        assert result.amount == Decimal("15.00")

    def test_fixed_amount_below_subtotal(self):
        result = evaluate_discount([line(P1, 1, "80.00")], rule(type=DiscountType.FIXED_AMOUNT, value="20"))
        assert result.amount == Decimal("20")

    def test_free_shipping_is_flag(self):
        result = evaluate_discount([line(P1, 1, "10.00")], rule(type=DiscountType.FREE_SHIPPING, value="0"))
        assert result.amount == 0
        assert result.applicable
        assert result.free_shipping

    def test_free_shipping_without_qualifying_lines(self):
        result = evaluate_discount(
            [line(P1, 1, "10.00")],
            rule(type=DiscountType.FREE_SHIPPING, value="0", scope=ProductTargets(frozenset({P2}))),
        )
        assert not result.applicable
        assert not result.free_shipping

    def test_empty_lines(self):
        result = evaluate_discount([], rule())
        assert result.amount == 0
        assert not result.applicable

    def test_min_subtotal_not_met(self):
        result = evaluate_discount([line(P1, 1, "20.00")], rule(min_subtotal="50"))
        assert not result.applicable
        assert result.amount == 0

    def test_min_subtotal_uses_qualifying_lines_only(self):
        lines = [line(P1, 1, "30.00"), line(P2, 1, "100.00")]
        result = evaluate_discount(lines, rule(min_subtotal="50", scope=ProductTargets(frozenset({P1}))))
        assert not result.applicable

    def test_product_scope_discounts_only_targets(self):
        lines = [line(P1, 1, "30.00"), line(P2, 1, "100.00")]
        result = evaluate_discount(lines, rule(value="50", scope=ProductTargets(frozenset({P1}))))
        assert result.amount == Decimal("15.00")

    def test_collections_scope_never_applies(self):
        result = evaluate_discount(
            [line(P1, 3, "30.00")],
            rule(scope=UnsupportedScope(DiscountScope.COLLECTIONS)),
        )
        assert result.amount == 0
        assert not result.applicable

    def test_bundle_quantity_not_met(self):
        metadata = DiscountMetadata.model_validate({"offerKind": "bundle", "bundle": {"requiredQty": 3}})
        result = evaluate_discount([line(P1, 2, "10.00")], rule(metadata=metadata))
        assert not result.applicable

    def test_bundle_quantity_met(self):
        metadata = DiscountMetadata.model_validate({"offer_kind": "bundle", "bundle": {"required_qty": 3}})
        result = evaluate_discount([line(P1, 3, "10.00")], rule(metadata=metadata))
        assert result.amount == Decimal("3.00")

    def test_buy_x_get_y_cheapest_units_free(self):
        metadata = DiscountMetadata.model_validate(
            {"version": 1, "offerKind": "bxgy", "bxgy": {"buyQty": 2, "getQty": 1}}
        )
        lines = [line(P1, 2, "30.00"), line(P2, 1, "10.00"), line(P2, 3, "10.00")]
        # 6 sztuk -> 2 darmowe, najtansze po 10
        result = evaluate_discount(lines, rule(metadata=metadata))
        assert result.amount == Decimal("20.00")

    def test_invalid_metadata_makes_discount_inapplicable(self):
        result = evaluate_discount([line(P1, 5, "10.00")], rule(metadata_error="bad metadata"))
        assert not result.applicable
        assert result.amount == 0


class TestDiscountMetadata:
    def test_kind_without_rule_is_rejected(self):
        with pytest.raises(ValidationError):
            DiscountMetadata.model_validate({"offerKind": "bundle"})

    def test_unknown_version_is_rejected(self):
        with pytest.raises(ValidationError):
            DiscountMetadata.model_validate({"version": 2})

    def test_unknown_keys_ignored(self):
        metadata = DiscountMetadata.model_validate({"label": "x"})
        assert metadata.bundle_min_quantity is None

    def test_deal_metadata_with_generic_offer(self):
        metadata = DiscountMetadata.model_validate(
            {"kind": "deal", "offerKind": "bxgy_generic", "bxgy": {"buyQty": 1, "getQty": 1}}
        )
        assert metadata.offer_kind == "bxgy_generic"
        assert not metadata.is_price_offer

    def test_bundle_gift_metadata(self):
        metadata = DiscountMetadata.model_validate(
            {
                "kind": "deal",
                "offerKind": "bxgy_bundle",
                "bxgyBundle": {
                    "buy": [{"productId": str(P1), "quantity": 2}],
                    "get": [{"productId": str(P2), "quantity": 1}],
                },
            }
        )
        assert metadata.bxgy_bundle.buy[0].product_id == P1
        assert metadata.bxgy_bundle.get[0].quantity == 1

    def test_bundle_gift_requires_get_list(self):
        with pytest.raises(ValidationError):
            DiscountMetadata.model_validate(
                {"offerKind": "bxgy_bundle", "bxgyBundle": {"buy": [{"productId": str(P1), "quantity": 1}], "get": []}}
            )

    def test_price_offer_flag(self):
        assert DiscountMetadata.model_validate({"kind": "offer"}).is_price_offer


# ------------------------------------------------------------------ #
#  gratisy                                                             #
# ------------------------------------------------------------------ #


def bundle_metadata(buy_qty=2, get_qty=1):
    return DiscountMetadata.model_validate(
        {
            "kind": "deal",
            "offerKind": "bxgy_bundle",
            "bxgyBundle": {
                "buy": [{"productId": str(P1), "quantity": buy_qty}],
                "get": [{"productId": str(P2), "quantity": get_qty}],
            },
        }
    )


class TestBundleGifts:
    def test_applications_ignore_gift_lines(self):
        metadata = bundle_metadata()
        lines = [line(P1, 5, "20.00"), line(P1, 2, "0.00", is_gift=True)]
        assert bundle_applications(lines, metadata.bxgy_bundle) == 2

    def test_gift_line_already_granted_gives_no_amount(self):
        promo = rule(type=DiscountType.FIXED_AMOUNT, value="0", metadata=bundle_metadata())
        lines = [line(P1, 2, "20.00"), line(P2, 1, "0.00", is_gift=True, gift_discount_id=promo.id)]

        result = evaluate_discount(lines, promo)

        assert result.amount == 0

    def test_paid_get_product_is_discounted_without_gift(self):
        promo = rule(type=DiscountType.FIXED_AMOUNT, value="0", metadata=bundle_metadata())
        lines = [line(P1, 4, "20.00"), line(P2, 3, "7.50")]

        result = evaluate_discount(lines, promo)

        # 2 zastosowania -> 2 darmowe sztuki P2
        assert result.amount == Decimal("15.00")
        assert result.applicable

    def test_ignores_min_subtotal(self):
        promo = rule(type=DiscountType.FIXED_AMOUNT, value="0", min_subtotal="1000", metadata=bundle_metadata())
        result = evaluate_discount([line(P1, 2, "20.00"), line(P2, 1, "5.00")], promo)
        assert result.amount == Decimal("5.00")

    def test_gift_lines_do_not_count_towards_subtotal(self):
        result = evaluate_discount(
            [line(P1, 1, "10.00"), line(P2, 1, "50.00", is_gift=True)],
            rule(type=DiscountType.FIXED_AMOUNT, value="20"),
        )
        assert result.amount == Decimal("10.00")
