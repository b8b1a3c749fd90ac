"""Shared helpers for store routers."""

from fastapi import Request
from services.store_service.services import StoreCore
from services.store_service.services.cascade import CascadeResult


def get_store(request: Request) -> StoreCore:
    """FastAPI dependency returning the store core built at startup."""
    return request.app.state.store


def cascade_payload(result: CascadeResult) -> dict:
    return {
        "id": result.entity.id,
        "is_active": result.entity.is_active,
        "subcategory_ids": result.subcategory_ids,
        "product_ids": result.product_ids,
    }
