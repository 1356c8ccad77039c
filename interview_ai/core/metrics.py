"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "Interview AI orchestration service info")
APP_INFO.info({"version": "1.0.0", "name": "interview_ai"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

AI_CACHE_LOOKUPS = Counter(
    "ai_cache_lookups_total",
    "Content cache lookups for AI operations",
    ["operation", "result"],
)

AI_REMOTE_ATTEMPTS = Counter(
    "ai_remote_attempts_total",
    "Attempts against the upstream AI provider",
    ["outcome"],
)

AI_REMOTE_ATTEMPT_DURATION = Histogram(
    "ai_remote_attempt_duration_seconds",
    "Duration of successful upstream AI attempts in seconds",
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 20, 30],
)

AI_QUEUE_LENGTH = Gauge("ai_admission_queue_length", "AI operations waiting for a concurrency slot")

AI_ACTIVE_REQUESTS = Gauge("ai_admission_active_requests", "AI operations currently running")


# --- Middleware ---


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus, labelled by route template."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        # Template ("/api/v1/interview/evaluate") once routing has run; raw path for 404s
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
