"""Entity repositories for the store service.

Repositories are stateless: every method takes the session that carries the
caller's transaction. Row locks (``for_update``) are taken in increasing id
order wherever more than one row is locked.
"""

from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from services.store_service.errors import NotFound
from services.store_service.models import (
    CartItem,
    Category,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Subcategory,
    User,
)
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key


def _lock(query, for_update: bool, read: bool = False):
    if not for_update:
        return query
    return query.with_for_update(read=read).execution_options(populate_existing=True)


# ============================================================================
# USERS
# ============================================================================


class UserRepository:
    async def get(self, db: AsyncSession, user_id: int) -> Optional[User]:
        return await db.get(User, user_id)

    async def get_or_raise(self, db: AsyncSession, user_id: int) -> User:
        user = await self.get(db, user_id)
        if not user:
            raise NotFound(f"User {user_id} not found", entity_id=user_id)
        return user

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()


# ============================================================================
# CATALOG
# ============================================================================


class CategoryRepository:
    async def get(
        self,
        db: AsyncSession,
        category_id: int,
        *,
        for_update: bool = False,
        read: bool = False,
    ) -> Optional[Category]:
        query = _lock(select(Category).where(Category.id == category_id), for_update, read)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_raise(self, db: AsyncSession, category_id: int, **kwargs) -> Category:
        category = await self.get(db, category_id, **kwargs)
        if not category:
            raise NotFound(
                f"Category {category_id} not found",
                field="category_id",
                entity_id=category_id,
            )
        return category

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Category]:
        result = await db.execute(select(Category).where(Category.name == name))
        return result.scalar_one_or_none()

    async def list_all(
        self, db: AsyncSession, *, active_only: bool = False
    ) -> Sequence[Category]:
        query = select(Category).order_by(Category.name)
        if active_only:
            query = query.where(Category.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()


class SubcategoryRepository:
    async def get(
        self,
        db: AsyncSession,
        subcategory_id: int,
        *,
        for_update: bool = False,
        read: bool = False,
    ) -> Optional[Subcategory]:
        query = _lock(
            select(Subcategory).where(Subcategory.id == subcategory_id), for_update, read
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_raise(
        self, db: AsyncSession, subcategory_id: int, **kwargs
    ) -> Subcategory:
        subcategory = await self.get(db, subcategory_id, **kwargs)
        if not subcategory:
            raise NotFound(
                f"Subcategory {subcategory_id} not found",
                field="subcategory_id",
                entity_id=subcategory_id,
            )
        return subcategory

    async def get_by_name(
        self, db: AsyncSession, category_id: int, name: str
    ) -> Optional[Subcategory]:
        result = await db.execute(
            select(Subcategory).where(
                Subcategory.category_id == category_id, Subcategory.name == name
            )
        )
        return result.scalar_one_or_none()

    async def list_all(
        self,
        db: AsyncSession,
        *,
        category_id: Optional[int] = None,
        active_only: bool = False,
    ) -> Sequence[Subcategory]:
        query = select(Subcategory).order_by(Subcategory.name)
        if category_id is not None:
            query = query.where(Subcategory.category_id == category_id)
        if active_only:
            query = query.where(Subcategory.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    async def lock_ids_for_category(self, db: AsyncSession, category_id: int) -> list[int]:
        query = (
            select(Subcategory.id)
            .where(Subcategory.category_id == category_id)
            .order_by(Subcategory.id)
            .with_for_update()
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_for_category(
        self, db: AsyncSession, category_id: int, *, active_only: bool = False
    ) -> int:
        query = select(func.count(Subcategory.id)).where(
            Subcategory.category_id == category_id
        )
        if active_only:
            query = query.where(Subcategory.is_active.is_(True))
        return (await db.execute(query)).scalar() or 0

    async def deactivate(self, db: AsyncSession, subcategory_ids: list[int]) -> None:
        if not subcategory_ids:
            return
        await db.execute(
            update(Subcategory)
            .where(Subcategory.id.in_(subcategory_ids))
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )


class ProductRepository:
    async def get(
        self,
        db: AsyncSession,
        product_id: int,
        *,
        for_update: bool = False,
    ) -> Optional[Product]:
        query = _lock(select(Product).where(Product.id == product_id), for_update)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_raise(self, db: AsyncSession, product_id: int, **kwargs) -> Product:
        product = await self.get(db, product_id, **kwargs)
        if not product:
            raise NotFound(
                f"Product {product_id} not found",
                field="product_id",
                entity_id=product_id,
            )
        return product

    async def lock_many(self, db: AsyncSession, product_ids) -> dict[int, Product]:
        """Lock the given products in increasing id order."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        query = _lock(
            select(Product).where(Product.id.in_(ids)).order_by(Product.id), True
        )
        result = await db.execute(query)
        return {product.id: product for product in result.scalars().all()}

    async def list_all(
        self,
        db: AsyncSession,
        *,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
        active_only: bool = False,
    ) -> Sequence[Product]:
        query = select(Product).order_by(Product.id)
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if subcategory_id is not None:
            query = query.where(Product.subcategory_id == subcategory_id)
        if active_only:
            query = query.where(Product.is_active.is_(True))
        result = await db.execute(query)
        return result.scalars().all()

    async def lock_ids(
        self,
        db: AsyncSession,
        *,
        category_id: Optional[int] = None,
        subcategory_ids: Sequence[int] = (),
    ) -> list[int]:
        """Lock every product under a category and/or subcategories."""
        conditions = []
        if category_id is not None:
            conditions.append(Product.category_id == category_id)
        if subcategory_ids:
            conditions.append(Product.subcategory_id.in_(list(subcategory_ids)))
        if not conditions:
            return []
        query = (
            select(Product.id)
            .where(or_(*conditions))
            .order_by(Product.id)
            .with_for_update()
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def deactivate(self, db: AsyncSession, product_ids: list[int]) -> None:
        if not product_ids:
            return
        await db.execute(
            update(Product)
            .where(Product.id.in_(product_ids))
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )

    async def count_for_category(
        self, db: AsyncSession, category_id: int, *, active_only: bool = False
    ) -> int:
        query = select(func.count(Product.id)).where(Product.category_id == category_id)
        if active_only:
            query = query.where(Product.is_active.is_(True))
        return (await db.execute(query)).scalar() or 0

    async def count_for_subcategory(self, db: AsyncSession, subcategory_id: int) -> int:
        query = select(func.count(Product.id)).where(
            Product.subcategory_id == subcategory_id
        )
        return (await db.execute(query)).scalar() or 0

    async def inventory_for_category(self, db: AsyncSession, category_id: int):
        """Return (total stock, total value) for a category."""
        query = select(
            func.coalesce(func.sum(Product.stock), 0),
            func.coalesce(func.sum(Product.price * Product.stock), 0),
        ).where(Product.category_id == category_id)
        return (await db.execute(query)).one()

    async def current_stock(self, db: AsyncSession, product_id: int) -> Optional[int]:
        result = await db.execute(select(Product.stock).where(Product.id == product_id))
        return result.scalar_one_or_none()

    async def decrement_stock(
        self, db: AsyncSession, product_id: int, quantity: int
    ) -> Optional[int]:
        """Conditionally decrement stock; return the new level or None.

        The WHERE clause is the guard: the row is only touched when it still
        holds at least ``quantity`` units at write time.
        """
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        new_stock = await self.current_stock(db, product_id)
        self._sync_stock(db, product_id, new_stock)
        return new_stock

    async def increment_stock(
        self, db: AsyncSession, product_id: int, quantity: int
    ) -> Optional[int]:
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        new_stock = await self.current_stock(db, product_id)
        self._sync_stock(db, product_id, new_stock)
        return new_stock

    async def set_stock(self, db: AsyncSession, product_id: int, stock: int) -> int:
        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=stock, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        self._sync_stock(db, product_id, stock)
        return stock

    @staticmethod
    def _sync_stock(db: AsyncSession, product_id: int, stock: Optional[int]) -> None:
        # Keep an already-loaded instance in step with the row without
        # marking it dirty.
        product = db.identity_map.get(identity_key(Product, product_id))
        if product is not None and stock is not None:
            set_committed_value(product, "stock", stock)


# ============================================================================
# CART
# ============================================================================


class CartRepository:
    async def lines_for_user(self, db: AsyncSession, user_id: int) -> Sequence[CartItem]:
        query = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .options(selectinload(CartItem.product))
            .order_by(CartItem.product_id)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def get_line(
        self, db: AsyncSession, user_id: int, product_id: int
    ) -> Optional[CartItem]:
        result = await db.execute(
            select(CartItem).where(
                CartItem.user_id == user_id, CartItem.product_id == product_id
            )
        )
        return result.scalar_one_or_none()

    async def get_item(
        self, db: AsyncSession, user_id: int, item_id: int
    ) -> Optional[CartItem]:
        result = await db.execute(
            select(CartItem)
            .where(CartItem.id == item_id, CartItem.user_id == user_id)
            .options(selectinload(CartItem.product))
        )
        return result.scalar_one_or_none()

    async def delete_for_user(self, db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_for_product(self, db: AsyncSession, product_id: int) -> int:
        result = await db.execute(
            delete(CartItem)
            .where(CartItem.product_id == product_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def count_for_user(self, db: AsyncSession, user_id: int) -> int:
        query = select(func.count(CartItem.id)).where(CartItem.user_id == user_id)
        return (await db.execute(query)).scalar() or 0


# ============================================================================
# ORDERS
# ============================================================================


class OrderRepository:
    async def get(
        self,
        db: AsyncSession,
        order_id: int,
        *,
        for_update: bool = False,
    ) -> Optional[Order]:
        query = _lock(
            select(Order).where(Order.id == order_id).options(selectinload(Order.items)),
            for_update,
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_raise(self, db: AsyncSession, order_id: int, **kwargs) -> Order:
        order = await self.get(db, order_id, **kwargs)
        if not order:
            raise NotFound(f"Order {order_id} not found", entity_id=order_id)
        return order

    async def list_all(
        self,
        db: AsyncSession,
        *,
        user_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
    ) -> Sequence[Order]:
        query = select(Order).options(selectinload(Order.items))
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        if status is not None:
            query = query.where(Order.status == status)
        result = await db.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))
        return result.scalars().all()

    async def count_lines_for_product(self, db: AsyncSession, product_id: int) -> int:
        query = select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id)
        return (await db.execute(query)).scalar() or 0

    async def best_sellers(self, db: AsyncSession, limit: int):
        """Rows of (product_id, product_name, total_sold), cancelled orders excluded."""
        total_sold = func.sum(OrderItem.quantity).label("total_sold")
        query = (
            select(OrderItem.product_id, Product.name, total_sold)
            .join(Order, Order.id == OrderItem.order_id)
            .join(Product, Product.id == OrderItem.product_id)
            .where(Order.status != OrderStatus.CANCELLED)
            .group_by(OrderItem.product_id, Product.name)
            .order_by(total_sold.desc(), OrderItem.product_id)
            .limit(limit)
        )
        result = await db.execute(query)
        return result.all()
