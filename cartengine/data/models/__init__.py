#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from cartengine.data.models.user import UserModel
from cartengine.data.models.setting import SettingModel
from cartengine.data.models.product import ProductModel, ProductVariantModel, product_categories
from cartengine.data.models.inventory import InventoryModel
from cartengine.data.models.discount import DiscountModel, discount_products, discount_categories
from cartengine.data.models.cart import CartModel
from cartengine.data.models.cart_item import CartItemModel
from cartengine.data.models.order import (
    OrderModel,
    OrderItemModel,
    OrderDiscountModel,
    OrderShippingAddressModel,
)

__all__ = [
    "UserModel",
    "SettingModel",
    "ProductModel",
    "ProductVariantModel",
    "product_categories",
    "InventoryModel",
    "DiscountModel",
    "discount_products",
    "discount_categories",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderDiscountModel",
    "OrderShippingAddressModel",
]
