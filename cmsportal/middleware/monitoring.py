"""Monitoring and observability middleware"""
import time
from typing import Callable
from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from cmsportal.utils.logger import logger


# ===== Prometheus Metrics =====

# Request metrics
http_requests_total = Counter(
    "cmsportal_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "cmsportal_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

# Domain metrics
login_attempts_total = Counter(
    "cmsportal_login_attempts_total",
    "Local login attempts",
    ["outcome"]  # success, invalid_credentials, rate_limited
)

document_actions_total = Counter(
    "cmsportal_document_actions_total",
    "Document portal actions",
    ["action"]  # view, download, upload, delete
)

# Error metrics
http_errors_total = Counter(
    "cmsportal_http_errors_total",
    "Total HTTP errors",
    ["method", "endpoint", "status"]
)

authentication_failures_total = Counter(
    "cmsportal_authentication_failures_total",
    "Total authentication failures",
    ["scheme"]  # local, access
)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Middleware for monitoring and metrics collection"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics"""
        start_time = time.time()

        method = request.method
        endpoint = request.url.path

        # Add request ID for tracing
        request_id = request.headers.get("x-request-id", f"req_{int(time.time() * 1000)}")
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            status = response.status_code

            # Label by route template, not raw path
            route = request.scope.get("route")
            if route is not None and getattr(route, "path", None):
                endpoint = route.path

            duration = time.time() - start_time
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)

            # Log slow requests
            if duration > 1.0:
                logger.warning(
                    f"Slow request detected: {method} {endpoint}",
                    extra={"request_id": request_id}
                )

            if status >= 400:
                http_errors_total.labels(
                    method=method,
                    endpoint=endpoint,
                    status=status
                ).inc()

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration:.3f}s"

            return response

        except Exception:
            duration = time.time() - start_time
            http_errors_total.labels(
                method=method,
                endpoint=endpoint,
                status=500
            ).inc()

            logger.error(
                f"Request failed: {method} {endpoint} after {duration:.3f}s",
                extra={"request_id": request_id},
                exc_info=True
            )
            raise


def record_auth_failure(scheme: str):
    """Record authentication failure"""
    authentication_failures_total.labels(scheme=scheme).inc()


def record_login(outcome: str):
    """Record local login outcome"""
    login_attempts_total.labels(outcome=outcome).inc()


def record_document_action(action: str):
    """Record a document portal action"""
    document_actions_total.labels(action=action).inc()
