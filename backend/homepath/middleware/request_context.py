# backend/homepath/middleware/request_context.py
from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[Optional[str]] = ContextVar("homepath_request_id", default=None)

log = logging.getLogger("homepath.request")


def current_request_id() -> Optional[str]:
    return _request_id.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id for the lifetime of the request, echoes it back in
    X-Request-ID and writes one access line when the response is done.

    An incoming X-Request-ID is reused so ids survive a proxy hop.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = _request_id.set(rid)
        t0 = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            log.info(
                "http_request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": int((time.perf_counter() - t0) * 1000),
                    # resolved principals only exist inside handlers
                    "user_email": request.headers.get(settings.dev_header_user_email),
                },
            )
            _request_id.reset(token)
