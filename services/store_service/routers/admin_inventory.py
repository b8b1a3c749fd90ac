"""Admin store inventory router: stock, reports, order management."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import require_admin, require_staff
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.routers._helpers import get_store
from services.store_service.schemas import (
    BestSellerResponse,
    CategoryStatsResponse,
    OrderResponse,
    OrderStatusUpdate,
    StockAdjustmentRequest,
    StockAdjustmentResponse,
)
from services.store_service.services import StoreCore
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


# ============================================================================
# INVENTORY
# ============================================================================


@router.post(
    "/products/{product_id}/stock", response_model=StockAdjustmentResponse
)
async def adjust_stock(
    product_id: int,
    adjustment: StockAdjustmentRequest,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Restock, write off or recount a product."""
    return await store.ledger.adjust_stock(
        db, product_id, adjustment.quantity, adjustment.operation
    )


@router.get("/categories/{category_id}/stats", response_model=CategoryStatsResponse)
async def get_category_stats(
    category_id: int,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.stats.category_stats(db, category_id)


@router.get("/reports/best-sellers", response_model=list[BestSellerResponse])
async def get_best_sellers(
    limit: Optional[int] = Query(None, ge=1, le=100),
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Products ranked by units sold, cancelled orders excluded."""
    return await store.stats.best_sellers(
        db, limit or get_settings().BEST_SELLERS_LIMIT
    )


# ============================================================================
# ORDER MANAGEMENT
# ============================================================================


@router.get("/orders", response_model=list[OrderResponse])
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None),
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List all orders with optional filters."""
    return await store.order_state.list_orders(
        db, user_id=user_id, status=status_filter
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.order_state.get_order(db, order_id)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    status_update: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Move an order along its lifecycle.

    Cancelling a pending or paid order puts its stock back.
    """
    return await store.order_state.transition(db, order_id, status_update.status)


@router.delete("/orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: int,
    current_user: AuthUser = Depends(require_admin),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Orders are never deleted; always answers 405."""
    await store.order_state.delete_order(db, order_id)
