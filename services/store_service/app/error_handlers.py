"""Translate store errors into HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from libs.common.logging import get_logger
from services.store_service.errors import StoreError

logger = get_logger(__name__)

STATUS_BY_KIND = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "PreconditionFailed": status.HTTP_409_CONFLICT,
    "ConsistencyViolation": status.HTTP_409_CONFLICT,
    "InsufficientStock": status.HTTP_409_CONFLICT,
    "EmptyCart": status.HTTP_400_BAD_REQUEST,
    "OrderCreationFailed": status.HTTP_409_CONFLICT,
    "InvalidTransition": status.HTTP_409_CONFLICT,
    "OperationNotAllowed": status.HTTP_405_METHOD_NOT_ALLOWED,
    "ValidationError": 422,
}


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    request.state.error_kind = exc.kind
    logger.warning(
        "%s %s rejected: %s: %s",
        request.method,
        request.url.path,
        exc.kind,
        exc.message,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreError, store_error_handler)
