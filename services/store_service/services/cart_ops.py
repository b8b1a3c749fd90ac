"""Cart lines: add, change, remove, clear.

Cart lines never hold stock; availability is only checked here and enforced
at checkout.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from libs.common.logging import get_logger
from libs.db.session import atomic
from services.store_service.errors import (
    InsufficientStock,
    NotFound,
    PreconditionFailed,
    ValidationError,
)
from services.store_service.models import CartItem
from services.store_service.repositories import CartRepository, ProductRepository
from services.store_service.services.stock_ledger import StockLedger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CartSummary:
    user_id: int
    items: Sequence[CartItem]
    total: Decimal

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


def cart_total(items: Sequence[CartItem]) -> Decimal:
    """Sum of snapshot price x quantity."""
    total = Decimal("0")
    for item in items:
        total += item.unit_price * item.quantity
    return total


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity")
    return quantity


class CartService:
    def __init__(
        self,
        carts: CartRepository,
        products: ProductRepository,
        ledger: StockLedger,
    ) -> None:
        self.carts = carts
        self.products = products
        self.ledger = ledger

    async def get_cart(self, db: AsyncSession, user_id: int) -> CartSummary:
        items = await self.carts.lines_for_user(db, user_id)
        return CartSummary(user_id=user_id, items=items, total=cart_total(items))

    async def add_to_cart(
        self, db: AsyncSession, user_id: int, product_id: int, quantity: int = 1
    ) -> CartItem:
        """Add a product; re-adding merges into the existing line.

        The line keeps the price captured when it was first created.
        """
        quantity = _validate_quantity(quantity)
        async with atomic(db):
            product = await self.products.get_or_raise(db, product_id)
            if not product.is_active:
                raise PreconditionFailed(
                    "Inactive products cannot be added to the cart",
                    field="product_id",
                    entity_id=product_id,
                )

            item = await self.carts.get_line(db, user_id, product_id)
            new_quantity = quantity + (item.quantity if item else 0)
            if not await self.ledger.has_stock(db, product_id, new_quantity):
                raise InsufficientStock(product_id, new_quantity, product.stock)

            if item:
                item.quantity = new_quantity
            else:
                item = CartItem(
                    user_id=user_id,
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=product.price,
                )
                db.add(item)
            try:
                await db.flush()
            except IntegrityError as e:
                # Another request created the same line since get_line
                raise ValidationError(
                    "This product was just added to the cart by another request; "
                    "please retry",
                    field="product_id",
                    entity_id=product_id,
                ) from e

        logger.info(
            "Cart of user %s: product %s x%d", user_id, product_id, item.quantity
        )
        return item

    async def update_cart_item(
        self, db: AsyncSession, user_id: int, item_id: int, quantity: int
    ) -> CartItem:
        quantity = _validate_quantity(quantity)
        async with atomic(db):
            item = await self.carts.get_item(db, user_id, item_id)
            if not item:
                raise NotFound("Cart item not found", entity_id=item_id)
            if not await self.ledger.has_stock(db, item.product_id, quantity):
                raise InsufficientStock(item.product_id, quantity, item.product.stock)
            item.quantity = quantity
            await db.flush()
        return item

    async def remove_cart_item(self, db: AsyncSession, user_id: int, item_id: int) -> None:
        async with atomic(db):
            item = await self.carts.get_item(db, user_id, item_id)
            if not item:
                raise NotFound("Cart item not found", entity_id=item_id)
            await db.delete(item)

    async def clear_cart(self, db: AsyncSession, user_id: int) -> int:
        async with atomic(db):
            removed = await self.carts.delete_for_user(db, user_id)
        logger.info("Cleared %d cart lines of user %s", removed, user_id)
        return removed
