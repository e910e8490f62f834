"""
Request logging middleware with correlation ID and Prometheus metrics
"""
import json
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from lib.logging import get_logger
from lib.prometheus_metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_response_size_bytes,
    update_uptime
)

access_logger = get_logger("access")
UNMATCHED_ENDPOINT = "unmatched"


def endpoint_label(request: Request) -> str:
    """Route template (/api/admin/users/{user_id}); requests no route matched share one label"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ENDPOINT


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        duration_seconds = time.time() - start_time

        response.headers["X-Request-ID"] = request_id

        endpoint = endpoint_label(request)
        method = request.method

        # Don't track the scrape endpoint itself
        if endpoint != "/metrics":
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=str(response.status_code)
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration_seconds)

            content_length = response.headers.get("content-length")
            if content_length:
                http_response_size_bytes.labels(
                    method=method,
                    endpoint=endpoint
                ).observe(int(content_length))

        update_uptime()

        # One JSON line per request for log aggregators
        access_logger.info(json.dumps({
            "method": method,
            "path": request.url.path,
            "status": response.status_code,
            "dur_ms": round(duration_seconds * 1000, 2),
            "request_id": request_id,
            "user_id": getattr(request.state, "user_id", None),
        }))

        return response
