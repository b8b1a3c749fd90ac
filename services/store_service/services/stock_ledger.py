"""Stock ledger: per-product available quantity with atomic reserve/release."""

from dataclasses import dataclass
from typing import Optional

from libs.common.logging import get_logger
from libs.db.session import atomic
from services.store_service.errors import InsufficientStock, ValidationError
from services.store_service.models import StockOperation
from services.store_service.repositories import ProductRepository
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class StockAdjustment:
    """Result of an admin stock adjustment."""

    product_id: int
    operation: StockOperation
    previous_stock: int
    new_stock: int


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive integer", field="quantity")


class StockLedger:
    """Reserve and release product stock.

    Every write locks the product row first and then applies a conditional
    UPDATE, so two reservations racing for the same units cannot both win and
    stock never goes below zero.
    """

    def __init__(self, products: ProductRepository) -> None:
        self.products = products

    async def has_stock(self, db: AsyncSession, product_id: int, quantity: int) -> bool:
        _require_positive(quantity)
        product = await self.products.get_or_raise(db, product_id)
        return product.has_stock(quantity)

    async def reserve(self, db: AsyncSession, product_id: int, quantity: int) -> int:
        """Decrement stock by ``quantity``; return the new stock level.

        Raises InsufficientStock when ``quantity`` exceeds the current stock.
        """
        _require_positive(quantity)
        async with atomic(db):
            product = await self.products.get_or_raise(db, product_id, for_update=True)
            if quantity > product.stock:
                raise InsufficientStock(product_id, quantity, product.stock)

            new_stock = await self.products.decrement_stock(db, product_id, quantity)
            if new_stock is None:
                # Lost a race on a backend without row locks
                available = await self.products.current_stock(db, product_id) or 0
                raise InsufficientStock(product_id, quantity, available)

        logger.info(
            "Reserved %d of product %s, stock now %d", quantity, product_id, new_stock
        )
        return new_stock

    async def release(self, db: AsyncSession, product_id: int, quantity: int) -> int:
        """Increment stock by ``quantity``; return the new stock level."""
        _require_positive(quantity)
        async with atomic(db):
            await self.products.get_or_raise(db, product_id, for_update=True)
            new_stock = await self.products.increment_stock(db, product_id, quantity)

        logger.info(
            "Released %d of product %s, stock now %d", quantity, product_id, new_stock
        )
        return new_stock

    async def adjust_stock(
        self,
        db: AsyncSession,
        product_id: int,
        quantity: int,
        operation: StockOperation,
    ) -> StockAdjustment:
        """Manual restock, write-off or recount."""
        operation = StockOperation(operation)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError("Quantity cannot be negative", field="quantity")

        async with atomic(db):
            product = await self.products.get_or_raise(db, product_id, for_update=True)
            previous = product.stock

            new_stock: Optional[int]
            if operation == StockOperation.SET:
                new_stock = await self.products.set_stock(db, product_id, quantity)
            elif quantity == 0:
                new_stock = previous
            elif operation == StockOperation.INCREASE:
                new_stock = await self.products.increment_stock(db, product_id, quantity)
            else:
                if quantity > previous:
                    raise InsufficientStock(product_id, quantity, previous)
                new_stock = await self.products.decrement_stock(db, product_id, quantity)
                if new_stock is None:
                    available = await self.products.current_stock(db, product_id) or 0
                    raise InsufficientStock(product_id, quantity, available)

        logger.info(
            "Stock %s for product %s: %d -> %d",
            operation.value,
            product_id,
            previous,
            new_stock,
        )
        return StockAdjustment(
            product_id=product_id,
            operation=operation,
            previous_stock=previous,
            new_stock=new_stock,
        )
