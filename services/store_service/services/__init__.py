"""Store core: repositories first, then the components built over them."""

from dataclasses import dataclass
from typing import Optional

from services.store_service.repositories import (
    CartRepository,
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    SubcategoryRepository,
    UserRepository,
)
from services.store_service.services.cart_ops import CartService
from services.store_service.services.cascade import CascadeEngine
from services.store_service.services.catalog_stats import CatalogStats
from services.store_service.services.checkout import CartToOrderConverter
from services.store_service.services.order_state import OrderStateMachine
from services.store_service.services.stock_ledger import StockLedger
from services.store_service.storage import ImageStorage


@dataclass
class StoreCore:
    users: UserRepository
    categories: CategoryRepository
    subcategories: SubcategoryRepository
    products: ProductRepository
    carts: CartRepository
    orders: OrderRepository
    cascade: CascadeEngine
    ledger: StockLedger
    cart: CartService
    checkout: CartToOrderConverter
    order_state: OrderStateMachine
    stats: CatalogStats


def build_store_core(image_storage: Optional[ImageStorage] = None) -> StoreCore:
    users = UserRepository()
    categories = CategoryRepository()
    subcategories = SubcategoryRepository()
    products = ProductRepository()
    carts = CartRepository()
    orders = OrderRepository()

    ledger = StockLedger(products)
    return StoreCore(
        users=users,
        categories=categories,
        subcategories=subcategories,
        products=products,
        carts=carts,
        orders=orders,
        cascade=CascadeEngine(
            categories, subcategories, products, carts, orders, image_storage
        ),
        ledger=ledger,
        cart=CartService(carts, products, ledger),
        checkout=CartToOrderConverter(carts, orders, products, ledger),
        order_state=OrderStateMachine(orders, products, ledger),
        stats=CatalogStats(categories, subcategories, products, orders),
    )


__all__ = ["StoreCore", "build_store_core"]
