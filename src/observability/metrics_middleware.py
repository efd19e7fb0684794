"""
FastAPI middleware for Prometheus request metrics.

Tracks request counts and latency per route template, so
/api/v1/users/42/points and /api/v1/users/43/points share one series.
"""

import logging
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.observability.metrics import (
    errors_total,
    http_requests_total,
    http_request_duration_seconds,
)

logger = logging.getLogger(__name__)


def route_template(request: Request) -> str:
    """Matched route path (e.g. /api/v1/users/{user_id}) or 'unmatched'"""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record a counter and a latency observation for every HTTP request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response

        except Exception as e:
            errors_total.labels(error_type=type(e).__name__, component="api").inc()
            raise

        finally:
            endpoint = route_template(request)
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, status=status_code
            ).inc()
            http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(time.perf_counter() - start_time)


def setup_metrics_middleware(app) -> None:
    """Add Prometheus metrics middleware to a FastAPI application."""
    app.add_middleware(PrometheusMiddleware)
    logger.info("Prometheus metrics middleware added to FastAPI")
