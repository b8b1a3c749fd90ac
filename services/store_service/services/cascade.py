"""Catalog writes and the deactivation cascade.

Deactivating a category deactivates all of its subcategories and products;
deactivating a subcategory deactivates its products. Activation only ever
touches the row it is asked about.

Lock order is category -> subcategory -> products (increasing id), for both
the cascade and the guarded inserts, so the two never deadlock.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from libs.common.logging import get_logger
from libs.db.session import atomic
from services.store_service.errors import (
    ConsistencyViolation,
    OperationNotAllowed,
    PreconditionFailed,
    ValidationError,
)
from services.store_service.models import Category, Product, Subcategory
from services.store_service.repositories import (
    CartRepository,
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    SubcategoryRepository,
)
from services.store_service.storage import ImageStorage
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

IMAGE_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif)$", re.IGNORECASE)


@dataclass
class CascadeResult:
    """Outcome of an activation change."""

    entity: Union[Category, Subcategory]
    subcategory_ids: list[int] = field(default_factory=list)
    product_ids: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def _validate_name(name: Any, min_len: int, max_len: int, field_name: str = "name") -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name cannot be empty", field=field_name)
    name = name.strip()
    if not min_len <= len(name) <= max_len:
        raise ValidationError(
            f"Name must be between {min_len} and {max_len} characters",
            field=field_name,
        )
    return name


def _validate_price(price: Any) -> Decimal:
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError):
        raise ValidationError("Price must be a valid decimal", field="price")
    if not value.is_finite() or value < 0:
        raise ValidationError("Price cannot be negative", field="price")
    return value.quantize(Decimal("0.01"))


def _validate_stock(stock: Any) -> int:
    if isinstance(stock, bool) or not isinstance(stock, int):
        raise ValidationError("Stock must be an integer", field="stock")
    if stock < 0:
        raise ValidationError("Stock cannot be negative", field="stock")
    return stock


def _validate_image(image: Optional[str]) -> Optional[str]:
    if image is None:
        return None
    if not IMAGE_PATTERN.search(image):
        raise ValidationError(
            "Image must be a JPG, JPEG, PNG or GIF file", field="image"
        )
    return image


async def _flush_unique(db: AsyncSession, message: str) -> None:
    """Flush, reporting a lost race on a unique name as a ValidationError."""
    try:
        await db.flush()
    except IntegrityError as e:
        raise ValidationError(message, field="name") from e


class CascadeEngine:
    def __init__(
        self,
        categories: CategoryRepository,
        subcategories: SubcategoryRepository,
        products: ProductRepository,
        carts: CartRepository,
        orders: OrderRepository,
        image_storage: Optional[ImageStorage] = None,
    ) -> None:
        self.categories = categories
        self.subcategories = subcategories
        self.products = products
        self.carts = carts
        self.orders = orders
        self.image_storage = image_storage

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def set_category_active(
        self, db: AsyncSession, category_id: int, active: bool
    ) -> CascadeResult:
        async with atomic(db):
            category = await self.categories.get_or_raise(db, category_id, for_update=True)
            category.is_active = active
            result = CascadeResult(entity=category)

            if not active:
                result.subcategory_ids = await self.subcategories.lock_ids_for_category(
                    db, category_id
                )
                result.product_ids = await self.products.lock_ids(
                    db,
                    category_id=category_id,
                    subcategory_ids=result.subcategory_ids,
                )
                await self.subcategories.deactivate(db, result.subcategory_ids)
                await self.products.deactivate(db, result.product_ids)

        logger.info(
            "Category %s set active=%s (cascaded to %d subcategories, %d products)",
            category_id,
            active,
            len(result.subcategory_ids),
            len(result.product_ids),
        )
        return result

    async def set_subcategory_active(
        self, db: AsyncSession, subcategory_id: int, active: bool
    ) -> CascadeResult:
        async with atomic(db):
            subcategory = await self.subcategories.get_or_raise(
                db, subcategory_id, for_update=True
            )
            subcategory.is_active = active
            result = CascadeResult(entity=subcategory)

            if not active:
                result.product_ids = await self.products.lock_ids(
                    db, subcategory_ids=[subcategory_id]
                )
                await self.products.deactivate(db, result.product_ids)

        logger.info(
            "Subcategory %s set active=%s (cascaded to %d products)",
            subcategory_id,
            active,
            len(result.product_ids),
        )
        return result

    async def set_product_active(
        self, db: AsyncSession, product_id: int, active: bool
    ) -> Product:
        async with atomic(db):
            product = await self.products.get_or_raise(db, product_id, for_update=True)
            product.is_active = active

        logger.info("Product %s set active=%s", product_id, active)
        return product

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def create_category(
        self, db: AsyncSession, name: str, description: Optional[str] = None
    ) -> Category:
        name = _validate_name(name, 2, 100)
        async with atomic(db):
            if await self.categories.get_by_name(db, name):
                raise ValidationError(
                    f'A category named "{name}" already exists', field="name"
                )
            category = Category(name=name, description=description, is_active=True)
            db.add(category)
            await _flush_unique(db, f'A category named "{name}" already exists')

        logger.info("Created category %s (%s)", category.id, name)
        return category

    async def update_category(
        self,
        db: AsyncSession,
        category_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Category:
        async with atomic(db):
            category = await self.categories.get_or_raise(db, category_id, for_update=True)
            if name is not None:
                name = _validate_name(name, 2, 100)
                existing = await self.categories.get_by_name(db, name)
                if existing and existing.id != category_id:
                    raise ValidationError(
                        f'A category named "{name}" already exists', field="name"
                    )
                category.name = name
            if description is not None:
                category.description = description
            await _flush_unique(db, f'A category named "{category.name}" already exists')
        return category

    async def delete_category(self, db: AsyncSession, category_id: int) -> None:
        async with atomic(db):
            category = await self.categories.get_or_raise(db, category_id, for_update=True)
            subcategories = await self.subcategories.count_for_category(db, category_id)
            if subcategories:
                raise OperationNotAllowed(
                    f"Category has {subcategories} subcategories; deactivate it instead",
                    entity_id=category_id,
                )
            products = await self.products.count_for_category(db, category_id)
            if products:
                raise OperationNotAllowed(
                    f"Category has {products} products; deactivate it instead",
                    entity_id=category_id,
                )
            await db.delete(category)

        logger.info("Deleted category %s", category_id)

    # ------------------------------------------------------------------
    # Subcategories
    # ------------------------------------------------------------------

    async def create_subcategory(
        self,
        db: AsyncSession,
        category_id: int,
        name: str,
        description: Optional[str] = None,
    ) -> Subcategory:
        name = _validate_name(name, 2, 100)
        async with atomic(db):
            category = await self.categories.get_or_raise(
                db, category_id, for_update=True, read=True
            )
            if not category.is_active:
                raise PreconditionFailed(
                    f'Category "{category.name}" is inactive',
                    field="category_id",
                    entity_id=category_id,
                )
            if await self.subcategories.get_by_name(db, category_id, name):
                raise ValidationError(
                    f'A subcategory named "{name}" already exists in this category',
                    field="name",
                )
            subcategory = Subcategory(
                name=name,
                description=description,
                category_id=category_id,
                is_active=True,
            )
            db.add(subcategory)
            await _flush_unique(
                db, f'A subcategory named "{name}" already exists in this category'
            )

        logger.info(
            "Created subcategory %s (%s) under category %s",
            subcategory.id,
            name,
            category_id,
        )
        return subcategory

    async def update_subcategory(
        self,
        db: AsyncSession,
        subcategory_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Subcategory:
        async with atomic(db):
            subcategory = await self.subcategories.get_or_raise(
                db, subcategory_id, for_update=True
            )
            if name is not None:
                name = _validate_name(name, 2, 100)
                existing = await self.subcategories.get_by_name(
                    db, subcategory.category_id, name
                )
                if existing and existing.id != subcategory_id:
                    raise ValidationError(
                        f'A subcategory named "{name}" already exists in this category',
                        field="name",
                    )
                subcategory.name = name
            if description is not None:
                subcategory.description = description
            await _flush_unique(
                db,
                f'A subcategory named "{subcategory.name}" already exists in this category',
            )
        return subcategory

    async def delete_subcategory(self, db: AsyncSession, subcategory_id: int) -> None:
        async with atomic(db):
            subcategory = await self.subcategories.get_or_raise(
                db, subcategory_id, for_update=True
            )
            products = await self.products.count_for_subcategory(db, subcategory_id)
            if products:
                raise OperationNotAllowed(
                    f"Subcategory has {products} products; deactivate it instead",
                    entity_id=subcategory_id,
                )
            await db.delete(subcategory)

        logger.info("Deleted subcategory %s", subcategory_id)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def _check_placement(
        self, db: AsyncSession, category_id: int, subcategory_id: int
    ) -> None:
        """Lock and verify the parents a product is placed under."""
        category = await self.categories.get_or_raise(
            db, category_id, for_update=True, read=True
        )
        subcategory = await self.subcategories.get_or_raise(
            db, subcategory_id, for_update=True, read=True
        )
        if subcategory.category_id != category_id:
            raise ConsistencyViolation(
                f'Subcategory "{subcategory.name}" does not belong to category {category_id}',
                field="subcategory_id",
                entity_id=subcategory_id,
            )
        if not category.is_active:
            raise PreconditionFailed(
                f'Category "{category.name}" is inactive',
                field="category_id",
                entity_id=category_id,
            )
        if not subcategory.is_active:
            raise PreconditionFailed(
                f'Subcategory "{subcategory.name}" is inactive',
                field="subcategory_id",
                entity_id=subcategory_id,
            )

    async def create_product(
        self,
        db: AsyncSession,
        *,
        name: str,
        price: Any,
        category_id: int,
        subcategory_id: int,
        stock: int = 0,
        description: Optional[str] = None,
        image: Optional[str] = None,
    ) -> Product:
        name = _validate_name(name, 3, 200)
        price = _validate_price(price)
        stock = _validate_stock(stock)
        image = _validate_image(image)

        async with atomic(db):
            await self._check_placement(db, category_id, subcategory_id)
            product = Product(
                name=name,
                description=description,
                price=price,
                stock=stock,
                image=image,
                category_id=category_id,
                subcategory_id=subcategory_id,
                is_active=True,
            )
            db.add(product)
            await db.flush()

        logger.info(
            "Created product %s (%s) in category %s / subcategory %s",
            product.id,
            name,
            category_id,
            subcategory_id,
        )
        return product

    async def update_product(
        self,
        db: AsyncSession,
        product_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        price: Any = None,
        stock: Optional[int] = None,
        image: Optional[str] = None,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
    ) -> Product:
        """Edit product fields.

        Moving a product re-runs the placement guards against the resulting
        (category, subcategory) pair.
        """
        async with atomic(db):
            product = await self.products.get_or_raise(db, product_id)

            moving = category_id is not None or subcategory_id is not None
            if moving:
                new_category_id = (
                    category_id if category_id is not None else product.category_id
                )
                new_subcategory_id = (
                    subcategory_id if subcategory_id is not None else product.subcategory_id
                )
                await self._check_placement(db, new_category_id, new_subcategory_id)

            # Parents are locked before the product row
            product = await self.products.get_or_raise(db, product_id, for_update=True)
            if moving:
                product.category_id = new_category_id
                product.subcategory_id = new_subcategory_id

            if name is not None:
                product.name = _validate_name(name, 3, 200)
            if description is not None:
                product.description = description
            if price is not None:
                product.price = _validate_price(price)
            if stock is not None:
                product.stock = _validate_stock(stock)
            if image is not None:
                product.image = _validate_image(image)
            await db.flush()

        return product

    async def delete_product(self, db: AsyncSession, product_id: int) -> bool:
        """Delete a product that no order references.

        Returns whether the stored image (if any) was removed.
        """
        async with atomic(db):
            product = await self.products.get_or_raise(db, product_id, for_update=True)
            if await self.orders.count_lines_for_product(db, product_id):
                raise OperationNotAllowed(
                    "Product is referenced by orders; deactivate it instead",
                    entity_id=product_id,
                )
            image = product.image
            await self.carts.delete_for_product(db, product_id)
            await db.delete(product)

        logger.info("Deleted product %s", product_id)

        image_deleted = False
        if image and self.image_storage is not None:
            image_deleted = self.image_storage.delete_image(image)
            if image_deleted:
                logger.info("Deleted image %s of product %s", image, product_id)
            else:
                logger.warning("Image %s of product %s was not deleted", image, product_id)
        return image_deleted
