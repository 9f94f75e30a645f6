"""Global exception handlers for consistent error responses.

Status mapping:
- ValidationAppError (incl. InvalidAmountError) -> 400
- AuthenticationAppError -> 401
- ConfigurationAppError -> 500
- StoreUnavailableError -> 503 with Retry-After
- anything else -> generic 500, no internals leaked

Every body has the shape {"error": {"code", "message", "request_id", "details"?}}.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationAppError,
    StoreUnavailableError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

STORE_RETRY_AFTER_SECONDS = 5


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, StoreUnavailableError):
        return 503
    if isinstance(exc, ConfigurationAppError):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render AppError subclasses with their mapped HTTP status."""
    status_code = _status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = None
    if isinstance(exc, StoreUnavailableError):
        headers = {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors. Logs the type, returns a generic body."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with a FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
