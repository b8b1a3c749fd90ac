"""Admin store catalog router: categories, subcategories, products."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import require_admin, require_staff
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.routers._helpers import cascade_payload, get_store
from services.store_service.schemas import (
    CascadeResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ProductCreate,
    ProductDeleteResponse,
    ProductResponse,
    ProductUpdate,
    SetActiveRequest,
    SubcategoryCreate,
    SubcategoryResponse,
    SubcategoryUpdate,
)
from services.store_service.services import StoreCore
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


# ============================================================================
# CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_all_categories(
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List all categories (including inactive)."""
    return await store.categories.list_all(db)


@router.post(
    "/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED
)
async def create_category(
    category_in: CategoryCreate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cascade.create_category(
        db, category_in.name, category_in.description
    )


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    category_in: CategoryUpdate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cascade.update_category(
        db, category_id, **category_in.model_dump(exclude_unset=True)
    )


@router.put("/categories/{category_id}/active", response_model=CascadeResponse)
async def set_category_active(
    category_id: int,
    body: SetActiveRequest,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Activate or deactivate a category.

    Deactivation also deactivates every subcategory and product under it.
    """
    result = await store.cascade.set_category_active(db, category_id, body.is_active)
    return cascade_payload(result)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    current_user: AuthUser = Depends(require_admin),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete an empty category."""
    await store.cascade.delete_category(db, category_id)


# ============================================================================
# SUBCATEGORIES
# ============================================================================


@router.get("/subcategories", response_model=list[SubcategoryResponse])
async def list_all_subcategories(
    category_id: Optional[int] = Query(None),
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.subcategories.list_all(db, category_id=category_id)


@router.post(
    "/subcategories",
    response_model=SubcategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subcategory(
    subcategory_in: SubcategoryCreate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a subcategory under an active category."""
    return await store.cascade.create_subcategory(
        db,
        subcategory_in.category_id,
        subcategory_in.name,
        subcategory_in.description,
    )


@router.patch("/subcategories/{subcategory_id}", response_model=SubcategoryResponse)
async def update_subcategory(
    subcategory_id: int,
    subcategory_in: SubcategoryUpdate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cascade.update_subcategory(
        db, subcategory_id, **subcategory_in.model_dump(exclude_unset=True)
    )


@router.put("/subcategories/{subcategory_id}/active", response_model=CascadeResponse)
async def set_subcategory_active(
    subcategory_id: int,
    body: SetActiveRequest,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    result = await store.cascade.set_subcategory_active(
        db, subcategory_id, body.is_active
    )
    return cascade_payload(result)


@router.delete(
    "/subcategories/{subcategory_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_subcategory(
    subcategory_id: int,
    current_user: AuthUser = Depends(require_admin),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    await store.cascade.delete_subcategory(db, subcategory_id)


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products", response_model=list[ProductResponse])
async def list_all_products(
    category_id: Optional[int] = Query(None),
    subcategory_id: Optional[int] = Query(None),
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List all products (including inactive)."""
    return await store.products.list_all(
        db, category_id=category_id, subcategory_id=subcategory_id
    )


@router.post(
    "/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED
)
async def create_product(
    product_in: ProductCreate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cascade.create_product(db, **product_in.model_dump())


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_in: ProductUpdate,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cascade.update_product(
        db, product_id, **product_in.model_dump(exclude_unset=True)
    )


@router.put("/products/{product_id}/active", response_model=ProductResponse)
async def set_product_active(
    product_id: int,
    body: SetActiveRequest,
    current_user: AuthUser = Depends(require_staff),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await store.cascade.set_product_active(db, product_id, body.is_active)


@router.delete("/products/{product_id}", response_model=ProductDeleteResponse)
async def delete_product(
    product_id: int,
    current_user: AuthUser = Depends(require_admin),
    store: StoreCore = Depends(get_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a product that no order refers to, along with its image."""
    image_deleted = await store.cascade.delete_product(db, product_id)
    return {"id": product_id, "image_deleted": image_deleted}
