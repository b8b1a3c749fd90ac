"""Unit tests for the order state machine."""

from decimal import Decimal

import pytest
from services.store_service.errors import (
    InvalidTransition,
    NotFound,
    OperationNotAllowed,
)
from services.store_service.models import OrderStatus
from services.store_service.services.checkout import ShippingInfo
from services.store_service.services.order_state import can_transition


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _place_order(db, store, user_id, lines):
    """Cart ``lines`` of (product, quantity) and check out."""
    for product, quantity in lines:
        await store.cart.add_to_cart(db, user_id, product.id, quantity)
    return await store.checkout.convert_cart_to_order(
        db,
        user_id,
        ShippingInfo(shipping_address="7 Marina Street", phone="0800000000"),
    )


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (OrderStatus.PENDING, OrderStatus.PAID, True),
        (OrderStatus.PENDING, OrderStatus.CANCELLED, True),
        (OrderStatus.PENDING, OrderStatus.SHIPPED, False),
        (OrderStatus.PAID, OrderStatus.SHIPPED, True),
        (OrderStatus.PAID, OrderStatus.CANCELLED, True),
        (OrderStatus.PAID, OrderStatus.PENDING, False),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED, True),
        (OrderStatus.SHIPPED, OrderStatus.PAID, False),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED, False),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
        (OrderStatus.CANCELLED, OrderStatus.PENDING, False),
        (OrderStatus.CANCELLED, OrderStatus.CANCELLED, False),
    ],
)
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_happy_path_sets_each_timestamp(db_session, store, customer, make_product):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 1)])

    paid = await store.order_state.pay(db_session, order.id)
    assert paid.status == OrderStatus.PAID
    assert paid.paid_at is not None

    shipped = await store.order_state.ship(db_session, order.id)
    assert shipped.shipped_at is not None

    delivered = await store.order_state.deliver(db_session, order.id)
    assert delivered.status == OrderStatus.DELIVERED
    assert delivered.delivered_at is not None
    assert delivered.cancelled_at is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_pending_restores_stock(db_session, store, customer, make_product):
    """Cancelling an order with a 3-unit line puts the 3 units back."""
    product = await make_product(stock=10)
    order = await _place_order(db_session, store, customer.id, [(product, 3)])
    assert await store.products.current_stock(db_session, product.id) == 7

    cancelled = await store.order_state.cancel(db_session, order.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    assert await store.products.current_stock(db_session, product.id) == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_paid_restores_every_line(
    db_session, store, customer, make_product
):
    first = await make_product(stock=4)
    second = await make_product(stock=6)
    order = await _place_order(
        db_session, store, customer.id, [(first, 2), (second, 6)]
    )
    await store.order_state.pay(db_session, order.id)

    await store.order_state.cancel(db_session, order.id)

    assert await store.products.current_stock(db_session, first.id) == 4
    assert await store.products.current_stock(db_session, second.id) == 6


@pytest.mark.asyncio
@pytest.mark.unit
async def test_double_cancel_rejected_without_restoring_twice(
    db_session, store, customer, make_product
):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 2)])
    order_id = order.id
    await store.order_state.cancel(db_session, order_id)

    with pytest.raises(InvalidTransition):
        await store.order_state.cancel(db_session, order_id)

    assert await store.products.current_stock(db_session, product.id) == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_shipped_cannot_go_back_to_paid(db_session, store, customer, make_product):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 1)])
    order_id = order.id
    await store.order_state.pay(db_session, order_id)
    await store.order_state.ship(db_session, order_id)

    with pytest.raises(InvalidTransition):
        await store.order_state.transition(db_session, order_id, OrderStatus.PAID)

    reloaded = await store.order_state.get_order(db_session, order_id)
    assert reloaded.status == OrderStatus.SHIPPED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_shipped_order_cannot_be_cancelled(
    db_session, store, customer, make_product
):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 2)])
    order_id = order.id
    await store.order_state.pay(db_session, order_id)
    await store.order_state.ship(db_session, order_id)

    with pytest.raises(InvalidTransition):
        await store.order_state.cancel(db_session, order_id)

    assert await store.products.current_stock(db_session, product.id) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delivered_is_terminal(db_session, store, customer, make_product):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 1)])
    order_id = order.id
    for step in (store.order_state.pay, store.order_state.ship, store.order_state.deliver):
        await step(db_session, order_id)

    for target in OrderStatus:
        with pytest.raises(InvalidTransition):
            await store.order_state.transition(db_session, order_id, target)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paid_timestamp_not_overwritten(db_session, store, customer, make_product):
    """A timestamp already recorded survives later transitions."""
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 1)])
    order_id = order.id

    await store.order_state.pay(db_session, order_id)
    with pytest.raises(InvalidTransition):
        await store.order_state.pay(db_session, order_id)
    paid_at = (await store.order_state.get_order(db_session, order_id)).paid_at
    shipped = await store.order_state.ship(db_session, order_id)

    assert shipped.paid_at == paid_at


# ---------------------------------------------------------------------------
# Reads and deletion
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_order_scoped_to_owner(
    db_session, store, customer, admin, make_product
):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 1)])

    own = await store.order_state.get_order(db_session, order.id, user_id=customer.id)
    assert own.id == order.id

    with pytest.raises(NotFound):
        await store.order_state.get_order(db_session, order.id, user_id=admin.id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_orders_filters(db_session, store, customer, make_product):
    product = await make_product(stock=10)
    first = await _place_order(db_session, store, customer.id, [(product, 1)])
    second = await _place_order(db_session, store, customer.id, [(product, 2)])
    await store.order_state.pay(db_session, second.id)

    orders = await store.order_state.list_orders(db_session, user_id=customer.id)
    pending = await store.order_state.list_orders(
        db_session, user_id=customer.id, status=OrderStatus.PENDING
    )

    assert {o.id for o in orders} == {first.id, second.id}
    assert [o.id for o in pending] == [first.id]
    assert pending[0].total == Decimal("10.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delete_order_always_refused(db_session, store, customer, make_product):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 1)])
    order_id = order.id

    with pytest.raises(OperationNotAllowed):
        await store.order_state.delete_order(db_session, order_id)
    with pytest.raises(NotFound):
        await store.order_state.delete_order(db_session, 555_555)

    assert (await store.order_state.get_order(db_session, order_id)).id == order_id


# ---------------------------------------------------------------------------
# Customer cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_pending_by_owner(db_session, store, customer, make_product):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 2)])

    cancelled = await store.order_state.cancel_pending(db_session, order.id, customer.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert await store.products.current_stock(db_session, product.id) == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_pending_rejects_other_users(
    db_session, store, customer, admin, make_product
):
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 2)])
    order_id = order.id

    with pytest.raises(NotFound):
        await store.order_state.cancel_pending(db_session, order_id, admin.id)

    reloaded = await store.order_state.get_order(db_session, order_id)
    assert reloaded.status == OrderStatus.PENDING
    assert await store.products.current_stock(db_session, product.id) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_pending_sees_payment_made_after_read(
    db_session, store, customer, make_product, session_factory
):
    """The order is paid by staff after the customer saw it pending."""
    product = await make_product(stock=5)
    order = await _place_order(db_session, store, customer.id, [(product, 2)])
    order_id = order.id

    seen = await store.order_state.get_order(db_session, order_id, user_id=customer.id)
    assert seen.status == OrderStatus.PENDING

    staff = session_factory()
    try:
        await store.order_state.pay(staff, order_id)
    finally:
        await staff.close()

    with pytest.raises(InvalidTransition):
        await store.order_state.cancel_pending(db_session, order_id, customer.id)

    reloaded = await store.order_state.get_order(db_session, order_id)
    assert reloaded.status == OrderStatus.PAID
    assert reloaded.cancelled_at is None
    assert await store.products.current_stock(db_session, product.id) == 3
