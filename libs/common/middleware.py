"""Request correlation for the store API.

Every response carries ``X-Request-ID`` (the caller's, or a fresh one) and
``X-Response-Time-Ms``. One access line is logged per request; requests the
store rejected also log the error kind the exception handler recorded on
``request.state``.
"""
import time
from typing import Callable, Iterable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, quiet_paths: Iterable[str] = ("/health",)) -> None:
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER),
            path=request.url.path,
            method=request.method,
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s crashed after %.1f ms",
                request.method,
                request.url.path,
                (time.perf_counter() - started) * 1000,
            )
            raise
        else:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers[RESPONSE_TIME_HEADER] = str(elapsed_ms)
            if request.url.path not in self.quiet_paths:
                self._log_access(request, response.status_code, elapsed_ms)
            return response
        finally:
            clear_request_context()

    @staticmethod
    def _log_access(request: Request, status_code: int, elapsed_ms: float) -> None:
        fields = {"status_code": status_code, "duration_ms": elapsed_ms}
        error_kind = getattr(request.state, "error_kind", None)
        if error_kind:
            fields["error_kind"] = error_kind
        log = logger.warning if status_code >= 400 else logger.info
        log(
            "%s %s -> %d",
            request.method,
            request.url.path,
            status_code,
            extra={"extra_fields": fields},
        )


def add_observability_middleware(app: FastAPI, **options) -> None:
    """Configure logging and install :class:`RequestContextMiddleware`."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware, **options)
