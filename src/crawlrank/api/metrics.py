# Prometheus Metrics for the search server
# Provides /metrics endpoint for scraping

import time

from fastapi import APIRouter, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

router = APIRouter()

UNMATCHED_PATH = "<unmatched>"

# Request counter (by method, route template, status)
REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge("http_requests_active", "Number of active HTTP requests")

SEARCH_COUNT = Counter(
    "search_requests_total",
    "Total search requests",
    ["outcome"],  # "hits" or "empty"
)

SEARCH_LATENCY = Histogram(
    "search_duration_seconds",
    "Search latency inside the ranking engine",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.time()

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            path = self._route_path(request)

            REQUEST_COUNT.labels(
                method=request.method, path=path, status=response.status_code
            ).inc()
            REQUEST_LATENCY.labels(method=request.method, path=path).observe(duration)

            return response
        finally:
            ACTIVE_REQUESTS.dec()

    def _route_path(self, request: Request) -> str:
        """Matched route template; unmatched paths share one label."""
        route = request.scope.get("route")
        return getattr(route, "path", None) or UNMATCHED_PATH


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_search(total: int, duration: float):
    """Record search-specific metrics."""
    SEARCH_COUNT.labels(outcome="hits" if total else "empty").inc()
    SEARCH_LATENCY.observe(duration)
