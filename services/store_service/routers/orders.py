"""Store orders router: checkout and the customer's order history."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.routers._helpers import get_store
from services.store_service.schemas import CheckoutRequest, OrderResponse
from services.store_service.services import StoreCore
from services.store_service.services.checkout import ShippingInfo
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/checkout", response_model=OrderResponse, status_code=status.HTTP_201_CREATED
)
async def checkout(
    request: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Turn the cart into a pending order and reserve its stock."""
    shipping_info = ShippingInfo(
        shipping_address=request.shipping_address,
        phone=request.phone,
        notes=request.notes,
    )
    return await store.checkout.convert_cart_to_order(
        db, current_user.user_id, shipping_info
    )


# ============================================================================
# ORDER HISTORY
# ============================================================================


@router.get("/orders", response_model=list[OrderResponse])
async def list_my_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List the current user's orders, newest first."""
    return await store.order_state.list_orders(
        db, user_id=current_user.user_id, status=status_filter
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_my_order(
    order_id: int,
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.order_state.get_order(
        db, order_id, user_id=current_user.user_id
    )


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_my_order(
    order_id: int,
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel one of the user's own orders while it is still pending."""
    return await store.order_state.cancel_pending(db, order_id, current_user.user_id)
