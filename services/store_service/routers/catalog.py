"""Store catalog router: public browsing of active categories and products."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.db.session import get_async_db
from services.store_service.errors import NotFound
from services.store_service.routers._helpers import get_store
from services.store_service.schemas import (
    CategoryResponse,
    ProductResponse,
    SubcategoryResponse,
)
from services.store_service.services import StoreCore
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


# ============================================================================
# CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List active categories."""
    return await store.categories.list_all(db, active_only=True)


@router.get(
    "/categories/{category_id}/subcategories",
    response_model=list[SubcategoryResponse],
)
async def list_subcategories(
    category_id: int,
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List the active subcategories of an active category."""
    category = await store.categories.get_or_raise(db, category_id)
    if not category.is_active:
        raise NotFound(f"Category {category_id} not found", entity_id=category_id)
    return await store.subcategories.list_all(
        db, category_id=category_id, active_only=True
    )


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products", response_model=list[ProductResponse])
async def list_products(
    category_id: Optional[int] = Query(None),
    subcategory_id: Optional[int] = Query(None),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List active products, optionally filtered by category or subcategory."""
    return await store.products.list_all(
        db,
        category_id=category_id,
        subcategory_id=subcategory_id,
        active_only=True,
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Get an active product."""
    product = await store.products.get_or_raise(db, product_id)
    if not product.is_active:
        # Inactive products are hidden from shoppers
        raise NotFound(f"Product {product_id} not found", entity_id=product_id)
    return product
