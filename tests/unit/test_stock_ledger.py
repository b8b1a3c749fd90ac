"""Unit tests for the stock ledger.

Tests call StockLedger directly with the db_session fixture.
"""

import asyncio

import pytest
from services.store_service.errors import InsufficientStock, NotFound, ValidationError
from services.store_service.models import StockOperation


# ---------------------------------------------------------------------------
# has_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_has_stock_boundaries(db_session, store, make_product):
    """has_stock is true up to and including the current stock."""
    product = await make_product(stock=5)

    assert await store.ledger.has_stock(db_session, product.id, 5) is True
    assert await store.ledger.has_stock(db_session, product.id, 6) is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_has_stock_unknown_product(db_session, store):
    with pytest.raises(NotFound):
        await store.ledger.has_stock(db_session, 999_999, 1)


# ---------------------------------------------------------------------------
# reserve / release
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_decrements_stock(db_session, store, make_product):
    product = await make_product(stock=5)

    new_stock = await store.ledger.reserve(db_session, product.id, 3)

    assert new_stock == 2
    assert await store.products.current_stock(db_session, product.id) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_entire_stock_reaches_zero(db_session, store, make_product):
    product = await make_product(stock=4)

    assert await store.ledger.reserve(db_session, product.id, 4) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_more_than_stock_fails_and_leaves_stock(
    db_session, store, make_product
):
    """Requesting more than available raises and changes nothing."""
    product = await make_product(stock=2)
    product_id = product.id

    with pytest.raises(InsufficientStock) as exc_info:
        await store.ledger.reserve(db_session, product_id, 3)

    assert exc_info.value.requested == 3
    assert exc_info.value.available == 2
    assert exc_info.value.entity_id == product_id
    assert await store.products.current_stock(db_session, product_id) == 2


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("quantity", [0, -1])
async def test_reserve_rejects_non_positive_quantity(
    db_session, store, make_product, quantity
):
    product = await make_product(stock=5)

    with pytest.raises(ValidationError):
        await store.ledger.reserve(db_session, product.id, quantity)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_has_no_upper_bound(db_session, store, make_product):
    product = await make_product(stock=1)

    assert await store.ledger.release(db_session, product.id, 100) == 101


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_then_release_restores_stock(db_session, store, make_product):
    product = await make_product(stock=7)

    await store.ledger.reserve(db_session, product.id, 4)
    await store.ledger.release(db_session, product.id, 4)

    assert await store.products.current_stock(db_session, product.id) == 7


@pytest.mark.asyncio
@pytest.mark.unit
async def test_conditional_decrement_never_goes_negative(
    db_session, store, make_product
):
    """The guarded UPDATE leaves the row alone when stock is short."""
    product = await make_product(stock=3)

    result = await store.products.decrement_stock(db_session, product.id, 4)
    await db_session.commit()

    assert result is None
    assert await store.products.current_stock(db_session, product.id) == 3


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_sees_stock_taken_by_another_session(
    db_session, store, make_product, session_factory
):
    """A stale in-session copy of the product cannot oversell."""
    product = await make_product(stock=5)
    product_id = product.id

    # This session has already seen stock=5
    loaded = await store.products.get(db_session, product_id)
    assert loaded.stock == 5

    other = session_factory()
    try:
        assert await store.ledger.reserve(other, product_id, 5) == 0
    finally:
        await other.close()

    with pytest.raises(InsufficientStock):
        await store.ledger.reserve(db_session, product_id, 5)
    assert await store.products.current_stock(db_session, product_id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_reservations_cannot_oversell(
    store, make_product, session_factory, is_sqlite
):
    """Two sessions racing for the last units: exactly one wins."""
    if is_sqlite:
        pytest.skip("Needs a database with row-level locks")

    product = await make_product(stock=5)
    product_id = product.id

    async def attempt():
        session = session_factory()
        try:
            return await store.ledger.reserve(session, product_id, 5)
        except InsufficientStock as e:
            return e
        finally:
            await session.close()

    results = await asyncio.gather(attempt(), attempt())

    assert sorted(isinstance(r, InsufficientStock) for r in results) == [False, True]
    check = session_factory()
    try:
        assert await store.products.current_stock(check, product_id) == 0
    finally:
        await check.close()


# ---------------------------------------------------------------------------
# adjust_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_stock_operations(db_session, store, make_product):
    product = await make_product(stock=10)

    increased = await store.ledger.adjust_stock(
        db_session, product.id, 5, StockOperation.INCREASE
    )
    assert (increased.previous_stock, increased.new_stock) == (10, 15)

    decreased = await store.ledger.adjust_stock(
        db_session, product.id, 3, StockOperation.DECREASE
    )
    assert (decreased.previous_stock, decreased.new_stock) == (15, 12)

    recounted = await store.ledger.adjust_stock(db_session, product.id, 4, "set")
    assert recounted.operation == StockOperation.SET
    assert recounted.new_stock == 4
    assert await store.products.current_stock(db_session, product.id) == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_stock_decrease_below_zero_rejected(
    db_session, store, make_product
):
    product = await make_product(stock=2)
    product_id = product.id

    with pytest.raises(InsufficientStock):
        await store.ledger.adjust_stock(
            db_session, product_id, 3, StockOperation.DECREASE
        )
    assert await store.products.current_stock(db_session, product_id) == 2
