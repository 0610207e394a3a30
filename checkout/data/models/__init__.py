#import every model so SQLAlchemy registers it in Base.metadata

from checkout.data.models.cart import CartModel
from checkout.data.models.cart_item import CartItemModel
from checkout.data.models.order import OrderModel
from checkout.data.models.order_item import OrderItemModel
from checkout.data.models.inventory import InventoryModel
from checkout.data.models.inventory_audit import InventoryAuditModel
from checkout.data.models.stock_hold import StockHoldModel

__all__ = [
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "InventoryModel",
    "InventoryAuditModel",
    "StockHoldModel",
]
