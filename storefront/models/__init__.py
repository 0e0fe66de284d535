# Models module - importing registers every table on Base.metadata
from storefront.models.user import User, UserRole
from storefront.models.product import Product
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatusHistory
from storefront.models.fulfillment import DistributorAssignment
from storefront.models.discount_code import DiscountCode
from storefront.models.commission import Commission
from storefront.models.task import Task
from storefront.models.inventory import Inventory, StockMovement
from storefront.models.wholesale import WholesaleApplication

__all__ = [
    "User",
    "UserRole",
    "Product",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "DistributorAssignment",
    "DiscountCode",
    "Commission",
    "Task",
    "Inventory",
    "StockMovement",
    "WholesaleApplication",
]
