"""
Request tracing for the Solar Quote API.

Every response carries X-Request-ID (the caller's, or a fresh uuid4) and
X-Process-Time in milliseconds. A form layer working on a saved quotation may
send X-Quotation-ID; it is echoed back and attached to the access log line so
derivation and aggregation calls for one quotation can be grouped.
"""
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("solarquote-api.access")

QUIET_PATHS = frozenset({"/health"})


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Access log + tracing headers; rejected request bodies (4xx) log at WARNING."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        quotation_id = request.headers.get("X-Quotation-ID")
        request.state.request_id = request_id
        request.state.quotation_id = quotation_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(elapsed_ms)
        if quotation_id:
            response.headers["X-Quotation-ID"] = quotation_id

        path = request.url.path
        if path in QUIET_PATHS:
            return response

        level = logging.WARNING if 400 <= response.status_code < 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {path} -> {response.status_code} in {elapsed_ms} ms",
            extra={
                "http_method": request.method,
                "http_path": path,
                "http_status": response.status_code,
                "request_id": request_id,
                "quotation_id": quotation_id,
                "duration_ms": elapsed_ms,
            },
        )
        return response
