"""Read-only catalog reports."""

from dataclasses import dataclass
from decimal import Decimal

from services.store_service.repositories import (
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    SubcategoryRepository,
)
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class ActiveCounts:
    total: int
    active: int

    @property
    def inactive(self) -> int:
        return self.total - self.active


@dataclass
class CategoryStats:
    category_id: int
    name: str
    is_active: bool
    subcategories: ActiveCounts
    products: ActiveCounts
    total_stock: int
    inventory_value: Decimal


@dataclass
class BestSeller:
    product_id: int
    name: str
    total_sold: int


class CatalogStats:
    def __init__(
        self,
        categories: CategoryRepository,
        subcategories: SubcategoryRepository,
        products: ProductRepository,
        orders: OrderRepository,
    ) -> None:
        self.categories = categories
        self.subcategories = subcategories
        self.products = products
        self.orders = orders

    async def category_stats(self, db: AsyncSession, category_id: int) -> CategoryStats:
        category = await self.categories.get_or_raise(db, category_id)
        total_stock, value = await self.products.inventory_for_category(db, category_id)
        return CategoryStats(
            category_id=category.id,
            name=category.name,
            is_active=category.is_active,
            subcategories=ActiveCounts(
                total=await self.subcategories.count_for_category(db, category_id),
                active=await self.subcategories.count_for_category(
                    db, category_id, active_only=True
                ),
            ),
            products=ActiveCounts(
                total=await self.products.count_for_category(db, category_id),
                active=await self.products.count_for_category(
                    db, category_id, active_only=True
                ),
            ),
            total_stock=int(total_stock),
            inventory_value=Decimal(str(value)).quantize(Decimal("0.01")),
        )

    async def best_sellers(self, db: AsyncSession, limit: int = 10) -> list[BestSeller]:
        rows = await self.orders.best_sellers(db, limit)
        return [
            BestSeller(product_id=product_id, name=name, total_sold=int(total_sold))
            for product_id, name, total_sold in rows
        ]
