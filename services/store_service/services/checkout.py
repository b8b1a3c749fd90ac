"""Cart-to-order conversion.

The order is a snapshot of the cart: quantities and the prices captured when
each line was added. Conversion is all-or-nothing; a failure leaves no order,
no stock change and the cart as it was.
"""

from dataclasses import dataclass
from typing import Optional

from libs.common.logging import get_logger
from libs.db.session import atomic
from services.store_service.errors import (
    EmptyCart,
    InsufficientStock,
    OrderCreationFailed,
    ValidationError,
)
from services.store_service.models import Order, OrderItem, OrderStatus
from services.store_service.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
)
from services.store_service.services.cart_ops import cart_total
from services.store_service.services.stock_ledger import StockLedger
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class ShippingInfo:
    shipping_address: str
    phone: str
    notes: Optional[str] = None

    def validate(self) -> "ShippingInfo":
        if not self.shipping_address or not self.shipping_address.strip():
            raise ValidationError(
                "Shipping address is required", field="shipping_address"
            )
        if not self.phone or not self.phone.strip():
            raise ValidationError("Phone is required", field="phone")
        if len(self.phone.strip()) > 20:
            raise ValidationError("Phone must be at most 20 characters", field="phone")
        return ShippingInfo(
            shipping_address=self.shipping_address.strip(),
            phone=self.phone.strip(),
            notes=self.notes,
        )


class CartToOrderConverter:
    def __init__(
        self,
        carts: CartRepository,
        orders: OrderRepository,
        products: ProductRepository,
        ledger: StockLedger,
    ) -> None:
        self.carts = carts
        self.orders = orders
        self.products = products
        self.ledger = ledger

    async def convert_cart_to_order(
        self, db: AsyncSession, user_id: int, shipping_info: ShippingInfo
    ) -> Order:
        shipping_info = shipping_info.validate()

        async with atomic(db):
            lines = list(await self.carts.lines_for_user(db, user_id))
            if not lines:
                raise EmptyCart("Cart is empty", entity_id=user_id)

            # Lock every product in id order before checking or reserving
            locked = await self.products.lock_many(db, [line.product_id for line in lines])

            for position, line in enumerate(lines, start=1):
                product = locked.get(line.product_id)
                if product is None or not product.is_active:
                    name = product.name if product else f"#{line.product_id}"
                    raise OrderCreationFailed(
                        f"Line {position}: product {name} is no longer available",
                        field="product_id",
                        entity_id=line.product_id,
                    )
                if not await self.ledger.has_stock(db, line.product_id, line.quantity):
                    raise OrderCreationFailed(
                        f"Line {position}: insufficient stock for {product.name} "
                        f"(requested {line.quantity}, available {product.stock})",
                        field="quantity",
                        entity_id=line.product_id,
                    )

            order = Order(
                order_number=Order.generate_order_number(),
                user_id=user_id,
                total=cart_total(lines),
                status=OrderStatus.PENDING,
                shipping_address=shipping_info.shipping_address,
                phone=shipping_info.phone,
                notes=shipping_info.notes,
            )
            db.add(order)
            await db.flush()  # Get order ID

            for line in lines:
                db.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=line.product_id,
                        product_name=locked[line.product_id].name,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        subtotal=line.unit_price * line.quantity,
                    )
                )

            for line in sorted(lines, key=lambda line: line.product_id):
                try:
                    await self.ledger.reserve(db, line.product_id, line.quantity)
                except InsufficientStock as e:
                    raise OrderCreationFailed(
                        f"Insufficient stock for {locked[line.product_id].name}: "
                        f"{e.message}",
                        field="quantity",
                        entity_id=line.product_id,
                    ) from e

            await self.carts.delete_for_user(db, user_id)
            await db.flush()

        order = await self.orders.get_or_raise(db, order.id)
        logger.info(
            "Created order %s for user %s: %d lines, total %s",
            order.order_number,
            user_id,
            len(order.items),
            order.total,
        )
        return order
