"""Prometheus metrics for the governance API, engine and finalizer worker."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
GOVERNANCE_REJECTION_COUNTER = Counter(
    "governance_rejections_total",
    "Governance operations rejected, by operation and error class.",
    labelnames=("operation", "error"),
)
VOTES_CAST_COUNTER = Counter(
    "governance_votes_cast_total",
    "Encrypted votes accepted into a tally.",
)
PROPOSALS_CREATED_COUNTER = Counter(
    "governance_proposals_created_total",
    "Proposals opened for voting.",
    labelnames=("proposal_type",),
)
PROPOSALS_FINALIZED_COUNTER = Counter(
    "governance_proposals_finalized_total",
    "Proposals finalized, by outcome.",
    labelnames=("outcome",),
)
FHE_OPERATION_COUNTER = Counter(
    "fhe_operations_total",
    "Operations executed by the FHE engine.",
    labelnames=("operation",),
)
TALLY_UPDATE_SECONDS = Histogram(
    "governance_tally_update_seconds",
    "Time spent applying one encrypted vote to a tally.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            route = request.scope.get("route")
            path = getattr(route, "path", path)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "FHE_OPERATION_COUNTER",
    "GOVERNANCE_REJECTION_COUNTER",
    "PROPOSALS_CREATED_COUNTER",
    "PROPOSALS_FINALIZED_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "TALLY_UPDATE_SECONDS",
    "VOTES_CAST_COUNTER",
    "metrics_endpoint",
    "metrics_router",
]
