# cartengine/services/gift_service.py
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from cartengine.data.models.cart import CartModel
from cartengine.data.models.cart_item import CartItemModel
from cartengine.data.models.product import ProductModel
from cartengine.domain.discounts import DiscountRule
from cartengine.repos.cart_repo import CartRepo
from cartengine.repos.discount_repo import DiscountRepo
from cartengine.services.discount_evaluator import bundle_applications
from cartengine.services.discount_selector import to_lines, usage_limit_reached
from cartengine.utils.logging import get_logger
from cartengine.utils.money import ZERO

logger = get_logger(__name__)


def suppression_key(discount_id: uuid.UUID, product_id: uuid.UUID) -> str:
    return f"{discount_id}:{product_id}"


class BundleGiftService:
    """
    Pozycje gratisowe automatycznych promocji bxgy_bundle.

    Za kazde pelne zastosowanie listy buy do koszyka trafia lista get z cena 0.
    Gratis usuniety przez klienta jest zapamietany w gift_suppressions koszyka
    i nie wraca, dopoki koszyk spelnia warunki promocji.
    """

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartRepo(db)
        self.discounts = DiscountRepo(db)

    def active_bundles(self, now: datetime) -> list[DiscountRule]:
        rules = []
        for discount in self.discounts.list_active_automatic(now):
            if usage_limit_reached(discount):
                continue
            rule = self.discounts.load_rule(discount)
            if rule.metadata is not None and rule.metadata.offer_kind == "bxgy_bundle":
                rules.append(rule)
        return rules

    def sync(self, cart: CartModel, now: datetime | None = None) -> None:
        bundles = self.active_bundles(now or datetime.now(timezone.utc))
        active_ids = {rule.id for rule in bundles}

        items = []
        for item in self.carts.get_cart_items(cart.id):
            # gratis po promocji, ktora juz nie dziala
            if item.is_gift and item.gift_discount_id not in active_ids:
                self.carts.delete_cart_item(item)
                continue
            items.append(item)

        if not bundles:
            return

        lines = to_lines(items)
        suppressions = dict(cart.gift_suppressions or {})
        suppressions_changed = False

        for rule in bundles:
            bundle = rule.metadata.bxgy_bundle
            gifts = [i for i in items if i.is_gift and i.gift_discount_id == rule.id]
            applications = bundle_applications(lines, bundle)

            if applications <= 0:
                for gift in gifts:
                    self.carts.delete_cart_item(gift)
                prefix = f"{rule.id}:"
                for key in [k for k in suppressions if k.startswith(prefix)]:
                    del suppressions[key]
                    suppressions_changed = True
                continue

            for get in bundle.get:
                existing = [g for g in gifts if g.product_id == get.product_id]

                if suppressions.get(suppression_key(rule.id, get.product_id)):
                    for gift in existing:
                        self.carts.delete_cart_item(gift)
                    continue

                desired = get.quantity * applications
                if existing:
                    gift = existing[0]
                    if gift.quantity != desired or gift.unit_price != 0 or gift.total_price != 0:
                        gift.quantity = desired
                        gift.unit_price = ZERO
                        gift.total_price = ZERO
                        self.carts.add_cart_item(gift)
                    continue

                product = self.db.get(ProductModel, get.product_id)
                if product is None:
                    logger.warning(f"Discount {rule.id}: gift product {get.product_id} not found, skipping")
                    continue

                self.carts.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product.id,
                        variant_id=None,
                        product_name=product.name,
                        variant_name=None,
                        sku=product.sku or str(product.id),
                        quantity=desired,
                        unit_price=ZERO,
                        total_price=ZERO,
                        is_gift=True,
                        gift_discount_id=rule.id,
                    )
                )
                logger.info(f"Cart {cart.id}: gift {product.id} x{desired} from discount {rule.id}")

        if suppressions_changed:
            self.carts.set_gift_suppressions(cart, suppressions)

    def suppress(self, cart: CartModel, gift: CartItemModel) -> None:
        suppressions = dict(cart.gift_suppressions or {})
        suppressions[suppression_key(gift.gift_discount_id, gift.product_id)] = True
        self.carts.set_gift_suppressions(cart, suppressions)
