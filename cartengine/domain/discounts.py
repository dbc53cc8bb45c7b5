# cartengine/domain/discounts.py
"""
Typy domenowe rabatow.

Zakres (scope) rabatu jest rozwiazywany do zamknietego zbioru wariantow:
AllLines, ProductTargets, CategoryTargets albo UnsupportedScope (collections).
Metadane rabatu sa walidowane przy odczycie przez DiscountMetadata.
"""
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


class DiscountScope(str, Enum):
    ALL = "all"
    PRODUCTS = "products"
    CATEGORIES = "categories"
    COLLECTIONS = "collections"
    CUSTOMER_GROUPS = "customer_groups"


_WHITESPACE = re.compile(r"\s+")


def normalize_code(code: str | None) -> str:
    return _WHITESPACE.sub(" ", str(code or "").strip()).upper()


# ----- metadane -----

# "bxgy" to starsza nazwa bxgy_generic
OfferKind = Literal["standard", "bundle", "bxgy_generic", "bxgy_bundle"]
_OFFER_KIND_ALIASES = {"bxgy": "bxgy_generic"}


class BundleRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    required_qty: int = Field(..., gt=0, alias="requiredQty")


class BuyXGetYRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    buy_qty: int = Field(..., gt=0, alias="buyQty")
    get_qty: int = Field(..., gt=0, alias="getQty")


class BundleLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: uuid.UUID = Field(..., alias="productId")
    quantity: int = Field(..., gt=0)


class BxgyBundleRule(BaseModel):
    """Kup wszystkie pozycje z buy, pozycje z get gratis (za kazde pelne zastosowanie)."""

    buy: list[BundleLine] = Field(..., min_length=1)
    get: list[BundleLine] = Field(..., min_length=1)


class DiscountMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: Literal[1] = 1
    kind: str | None = None
    offer_kind: OfferKind | None = Field(default=None, alias="offerKind")
    bundle: BundleRule | None = None
    bxgy: BuyXGetYRule | None = Field(default=None, validation_alias=AliasChoices("bxgy", "bxgyGeneric"))
    bxgy_bundle: BxgyBundleRule | None = Field(
        default=None,
        validation_alias=AliasChoices("bxgyBundle", "bundleBxgy", "bxgy_bundle"),
    )

    @field_validator("offer_kind", mode="before")
    @classmethod
    def _legacy_offer_kind(cls, value):
        if isinstance(value, str):
            return _OFFER_KIND_ALIASES.get(value, value)
        return value

    @model_validator(mode="after")
    def _rule_matches_kind(self):
        if self.offer_kind == "bundle" and self.bundle is None:
            raise ValueError("offer_kind 'bundle' requires a bundle rule")
        if self.offer_kind == "bxgy_generic" and self.bxgy is None:
            raise ValueError("offer_kind 'bxgy_generic' requires a bxgy rule")
        if self.offer_kind == "bxgy_bundle" and self.bxgy_bundle is None:
            raise ValueError("offer_kind 'bxgy_bundle' requires a bxgyBundle rule")
        return self

    @property
    def bundle_min_quantity(self) -> int | None:
        if self.offer_kind == "bundle" and self.bundle:
            return self.bundle.required_qty
        return None

    @property
    def is_price_offer(self) -> bool:
        # oferty cenowe dzialaja na cenach produktow, nie jako rabat koszyka
        return self.kind == "offer"


# ----- zakres -----

@dataclass(frozen=True)
class AllLines:
    pass


@dataclass(frozen=True)
class ProductTargets:
    product_ids: frozenset[uuid.UUID]


@dataclass(frozen=True)
class CategoryTargets:
    category_ids: frozenset[uuid.UUID]


@dataclass(frozen=True)
class UnsupportedScope:
    scope: DiscountScope


TargetScope = AllLines | ProductTargets | CategoryTargets | UnsupportedScope


@dataclass(frozen=True)
class CartLine:
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    is_gift: bool = False
    gift_discount_id: uuid.UUID | None = None


@dataclass(frozen=True)
class DiscountRule:
    """Niezmienny widok rabatu uzywany przez evaluator (bez I/O)."""

    id: uuid.UUID
    name: str
    code: str | None
    type: DiscountType
    scope: TargetScope
    value: Decimal
    min_subtotal: Decimal | None = None
    metadata: DiscountMetadata | None = None
    # niepoprawne metadane -> rabat nie ma zastosowania
    metadata_error: str | None = None
    is_automatic: bool = False


@dataclass(frozen=True)
class DiscountEvaluation:
    amount: Decimal
    applicable: bool
    free_shipping: bool = False


@dataclass(frozen=True)
class DiscountSelection:
    amount: Decimal
    discount_id: uuid.UUID | None = None
    code: str | None = None
    type: DiscountType | None = None
    value: Decimal | None = None
    is_automatic: bool = False
    free_shipping: bool = False

    @property
    def applied(self) -> bool:
        return self.discount_id is not None
