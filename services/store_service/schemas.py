"""Pydantic schemas for store service."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.store_service.models import OrderStatus, StockOperation

# ============================================================================
# CATEGORY SCHEMAS
# ============================================================================


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None


class CategoryResponse(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# SUBCATEGORY SCHEMAS
# ============================================================================


class SubcategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None


class SubcategoryCreate(SubcategoryBase):
    category_id: int


class SubcategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None


class SubcategoryResponse(SubcategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class ProductBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    image: Optional[str] = Field(None, max_length=255)
    category_id: int
    subcategory_id: int


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    image: Optional[str] = Field(None, max_length=255)
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProductDeleteResponse(BaseModel):
    id: int
    image_deleted: bool


# ============================================================================
# ACTIVATION SCHEMAS
# ============================================================================


class SetActiveRequest(BaseModel):
    is_active: bool


class CascadeResponse(BaseModel):
    """Which rows an activation change touched."""

    id: int
    is_active: bool
    subcategory_ids: list[int] = []
    product_ids: list[int] = []


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================


class StockAdjustmentRequest(BaseModel):
    quantity: int = Field(..., ge=0)
    operation: StockOperation


class StockAdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    operation: StockOperation
    previous_stock: int
    new_stock: int


class ActiveCountsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    active: int
    inactive: int


class CategoryStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    name: str
    is_active: bool
    subcategories: ActiveCountsResponse
    products: ActiveCountsResponse
    total_stock: int
    inventory_value: Decimal


class BestSellerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    name: str
    total_sold: int


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    items: list[CartItemResponse] = []
    item_count: int
    total: Decimal


class CartClearedResponse(BaseModel):
    removed: int


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutRequest(BaseModel):
    shipping_address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1, max_length=20)
    notes: Optional[str] = None


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    total: Decimal
    status: OrderStatus
    shipping_address: str
    phone: str
    notes: Optional[str] = None

    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    items: list[OrderItemResponse] = []


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
