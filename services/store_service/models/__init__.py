"""Store Service models package."""

from services.store_service.models.catalog import Category, Product, Subcategory
from services.store_service.models.commerce import CartItem, Order, OrderItem
from services.store_service.models.enums import OrderStatus, StockOperation, UserRole
from services.store_service.models.users import User

__all__ = [
    "CartItem",
    "Category",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "StockOperation",
    "Subcategory",
    "User",
    "UserRole",
]
