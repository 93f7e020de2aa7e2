# newsfeed/middleware.py
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .logging_setup import request_id_var, get_logger

logger = get_logger("newsfeed.http")

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})  # polled by probes


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with one id and echoes it back in a response header."""

    async def dispatch(self, request: Request, call_next):
        # An upstream gateway may already have assigned one
        req_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        token = request_id_var.set(req_id)
        start = time.perf_counter()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = req_id
            return response
        finally:
            status = response.status_code if response is not None else 500
            if request.url.path not in QUIET_PATHS or status >= 400:
                logger.info(
                    "HTTP_REQUEST",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": status,
                        "elapsed_ms": round((time.perf_counter() - start) * 1000, 1),
                    },
                )
            request_id_var.reset(token)
