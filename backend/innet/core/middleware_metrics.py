"""
Middleware for collecting HTTP request metrics
"""
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from innet.core.logging_config import LoggingConfig
from innet.core.metrics import (
    http_errors_total,
    http_request_duration_seconds,
    http_requests_total,
)

logger = LoggingConfig.get_logger(__name__)


def metrics_endpoint_label(path: str) -> str:
    """
    Collapse variable path segments so labels stay low-cardinality

    Example:
        >>> metrics_endpoint_label("/share/AbC23xYz9")
        '/share/{slug}'
    """
    parts = path.split("/")
    if len(parts) == 3 and parts[1] == "share" and parts[2]:
        parts[2] = "{slug}"
    return "/".join(parts)


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        status_code = 500
        error_type = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            duration = time.time() - start_time
            endpoint = metrics_endpoint_label(request.url.path)
            method = request.method
            status_code_str = str(status_code)

            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code_str
            ).inc()
            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code_str
            ).observe(duration)
            if status_code >= 400:
                http_errors_total.labels(
                    method=method,
                    endpoint=endpoint,
                    status_code=status_code_str,
                    error_type=error_type or f"http_{status_code}"
                ).inc()

        return response
