"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency, and a short
request ID for correlation. The request_id is also injected into
request.state so handlers can put it in the ApiResponse envelope.

Polling endpoints (status, pricing, health) log at DEBUG to keep the round
log readable; everything else logs at INFO. For the SSE stream the latency is
time-to-headers, not connection lifetime.

Log format:
    INFO [POST] /api/v1/control → 200 (23ms) req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.tm_common.datetime_utils import elapsed_ms

logger = logging.getLogger("tm.request")

QUIET_PATHS = frozenset({"/health", "/api/v1/control/status", "/api/v1/pricing"})


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"

        start = time.perf_counter()
        response: Response = await call_next(request)

        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms(start),
            request.state.request_id,
        )
        response.headers["X-Request-ID"] = request.state.request_id
        return response
