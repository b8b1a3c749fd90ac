"""FastAPI application for the Store Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.db.config import Database
from services.store_service.app.error_handlers import add_exception_handlers
from services.store_service.routers import (
    admin_catalog_router,
    admin_inventory_router,
    cart_router,
    catalog_router,
    orders_router,
)
from services.store_service.services import build_store_core
from services.store_service.storage import LocalImageStorage

logger = get_logger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Create and configure the Store Service FastAPI app.

    ``database`` is opened at startup and disposed at shutdown; when omitted
    one is built from settings.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database.from_settings(settings)
        db.open()
        app.state.db = db
        app.state.store = build_store_core(LocalImageStorage(settings.UPLOAD_DIR))
        logger.info("Store service started (%s)", settings.ENVIRONMENT)
        try:
            yield
        finally:
            await db.close()

    app = FastAPI(
        title="Store Service",
        version="0.1.0",
        description="E-commerce service: catalog, cart, checkout, orders.",
        lifespan=lifespan,
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Public store routes (catalog, cart, checkout, orders)
    app.include_router(catalog_router, prefix="/store")
    app.include_router(cart_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")

    # Admin routes (catalog management, inventory, order management)
    app.include_router(admin_catalog_router, prefix="/admin/store")
    app.include_router(admin_inventory_router, prefix="/admin/store")

    return app


app = create_app()
