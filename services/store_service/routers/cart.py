"""Store cart router: the signed-in user's cart lines."""

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.routers._helpers import get_store
from services.store_service.schemas import (
    CartClearedResponse,
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
)
from services.store_service.services import StoreCore
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current user's cart with its total."""
    return await store.cart.get_cart(db, current_user.user_id)


@router.post(
    "/cart/items", response_model=CartItemResponse, status_code=status.HTTP_201_CREATED
)
async def add_cart_item(
    item_in: CartItemCreate,
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product to the cart. Adding it again increases the quantity."""
    return await store.cart.add_to_cart(
        db, current_user.user_id, item_in.product_id, item_in.quantity
    )


@router.patch("/cart/items/{item_id}", response_model=CartItemResponse)
async def update_cart_item(
    item_id: int,
    item_in: CartItemUpdate,
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cart.update_cart_item(
        db, current_user.user_id, item_id, item_in.quantity
    )


@router.delete("/cart/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cart_item(
    item_id: int,
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    await store.cart.remove_cart_item(db, current_user.user_id, item_id)


@router.delete("/cart", response_model=CartClearedResponse)
async def clear_cart(
    current_user: AuthUser = Depends(get_current_user),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove every line from the cart."""
    removed = await store.cart.clear_cart(db, current_user.user_id)
    return {"removed": removed}
