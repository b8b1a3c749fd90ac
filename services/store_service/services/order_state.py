"""Order lifecycle.

    pending -> paid -> shipped -> delivered
    pending | paid -> cancelled

delivered and cancelled are terminal. Cancelling puts every line's quantity
back into stock. Orders are never deleted.
"""

from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.store_service.errors import (
    InvalidTransition,
    NotFound,
    OperationNotAllowed,
)
from services.store_service.models import Order, OrderStatus
from services.store_service.repositories import OrderRepository, ProductRepository
from services.store_service.services.stock_ledger import StockLedger
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Status -> timestamp column stamped on entry
TIMESTAMP_FIELDS = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class OrderStateMachine:
    def __init__(
        self,
        orders: OrderRepository,
        products: ProductRepository,
        ledger: StockLedger,
    ) -> None:
        self.orders = orders
        self.products = products
        self.ledger = ledger

    async def get_order(
        self, db: AsyncSession, order_id: int, *, user_id: Optional[int] = None
    ) -> Order:
        """Load an order; with ``user_id`` only that user's order is visible."""
        order = await self.orders.get_or_raise(db, order_id)
        if user_id is not None and order.user_id != user_id:
            raise NotFound(f"Order {order_id} not found", entity_id=order_id)
        return order

    async def list_orders(
        self,
        db: AsyncSession,
        *,
        user_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
    ) -> Sequence[Order]:
        return await self.orders.list_all(db, user_id=user_id, status=status)

    async def transition(
        self,
        db: AsyncSession,
        order_id: int,
        target: OrderStatus,
        *,
        allowed_from: Optional[frozenset[OrderStatus]] = None,
        user_id: Optional[int] = None,
    ) -> Order:
        """Move an order to ``target`` under a row lock.

        ``allowed_from`` narrows the statuses the move may start from and
        ``user_id`` restricts it to that user's order; both are checked
        against the locked row.
        """
        target = OrderStatus(target)
        async with atomic(db):
            order = await self.orders.get_or_raise(db, order_id, for_update=True)
            if user_id is not None and order.user_id != user_id:
                raise NotFound(f"Order {order_id} not found", entity_id=order_id)
            current = order.status

            if allowed_from is not None and current not in allowed_from:
                allowed = ", ".join(sorted(status.value for status in allowed_from))
                logger.warning(
                    "Rejected order %s transition %s -> %s: only from %s",
                    order.order_number,
                    current.value,
                    target.value,
                    allowed,
                )
                raise InvalidTransition(
                    f"Order is {current.value}; only {allowed} orders "
                    f"can be moved to {target.value}",
                    field="status",
                    entity_id=order_id,
                )

            if not can_transition(current, target):
                logger.warning(
                    "Rejected order %s transition %s -> %s",
                    order.order_number,
                    current.value,
                    target.value,
                )
                raise InvalidTransition(
                    f"Cannot move order from {current.value} to {target.value}",
                    field="status",
                    entity_id=order_id,
                )

            if target == OrderStatus.CANCELLED:
                await self._restore_stock(db, order)

            timestamp_field = TIMESTAMP_FIELDS[target]
            if getattr(order, timestamp_field) is None:
                setattr(order, timestamp_field, utc_now())
            order.status = target
            await db.flush()

        logger.info(
            "Order %s moved %s -> %s", order.order_number, current.value, target.value
        )
        return order

    async def _restore_stock(self, db: AsyncSession, order: Order) -> None:
        quantities: dict[int, int] = {}
        for item in order.items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

        await self.products.lock_many(db, quantities)
        for product_id in sorted(quantities):
            await self.ledger.release(db, product_id, quantities[product_id])

    async def pay(self, db: AsyncSession, order_id: int) -> Order:
        return await self.transition(db, order_id, OrderStatus.PAID)

    async def ship(self, db: AsyncSession, order_id: int) -> Order:
        return await self.transition(db, order_id, OrderStatus.SHIPPED)

    async def deliver(self, db: AsyncSession, order_id: int) -> Order:
        return await self.transition(db, order_id, OrderStatus.DELIVERED)

    async def cancel(self, db: AsyncSession, order_id: int) -> Order:
        return await self.transition(db, order_id, OrderStatus.CANCELLED)

    async def cancel_pending(
        self, db: AsyncSession, order_id: int, user_id: int
    ) -> Order:
        """Customer cancellation: the user's own order, and only while pending."""
        return await self.transition(
            db,
            order_id,
            OrderStatus.CANCELLED,
            allowed_from=frozenset({OrderStatus.PENDING}),
            user_id=user_id,
        )

    async def delete_order(self, db: AsyncSession, order_id: int) -> None:
        await self.orders.get_or_raise(db, order_id)
        raise OperationNotAllowed(
            "Orders cannot be deleted; cancel the order instead",
            entity_id=order_id,
        )
