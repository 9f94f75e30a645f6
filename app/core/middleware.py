"""HTTP middleware for request correlation.

Every quota decision is logged from deep inside the tracker or the store
(``quota.checked``, ``quota.recorded``, ``quota_store.unavailable``...). Those
records carry no request object, so the middleware parks the request id in a
ContextVar that ``RequestIdFilter`` copies onto each record as ``request_id``.
Grepping one id therefore yields the identity hash, the quota outcome and the
closing ``request.completed`` line for a single call.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

DURATION_HEADER = "X-Request-Duration-ms"


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id for the duration of the call and log its outcome.

    The id comes from LOG_REQUEST_ID_HEADER (X-Request-ID by default) when
    the client sends one, otherwise a UUID4. It is echoed on the response
    together with the handling time.
    """
    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{elapsed_ms:.2f}")
    return response
