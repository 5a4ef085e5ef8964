"""
Monitoring & Observability Middleware
Request tracing, Prometheus metrics and structured request logging.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from tix.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

struct_logger = structlog.get_logger("tix.requests")


class PrometheusMetrics:
    """HTTP-level Prometheus metrics"""

    def __init__(self) -> None:
        self.http_requests_total = Counter(
            "tix_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
        )
        self.http_request_duration_seconds = Histogram(
            "tix_http_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )
        self.active_requests = Gauge(
            "tix_active_requests", "Number of requests being served"
        )
        self.errors_total = Counter(
            "tix_errors_total", "Total unhandled application errors", ["error_type", "endpoint"]
        )

    def record_request(
        self, method: str, endpoint: str, status_code: int, duration: float
    ) -> None:
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(
            method=method, endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, endpoint: str) -> None:
        self.errors_total.labels(error_type=error_type, endpoint=endpoint).inc()


class BusinessMetrics:
    """Booking and payment counters"""

    def __init__(self) -> None:
        self.bookings_total = Counter(
            "tix_bookings_total", "Booking ledger transitions", ["status"]
        )
        self.payment_failures_total = Counter(
            "tix_payment_failures_total", "Payment processor failures", ["operation"]
        )
        self.user_registrations_total = Counter(
            "tix_user_registrations_total", "Total user registrations"
        )
        self.events_created_total = Counter(
            "tix_events_created_total", "Total events created"
        )

    def record_booking(self, status: str, count: int = 1) -> None:
        self.bookings_total.labels(status=status).inc(count)

    def record_payment_failure(self, operation: str) -> None:
        self.payment_failures_total.labels(operation=operation).inc()


http_metrics = PrometheusMetrics()
business_metrics = BusinessMetrics()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return str(forwarded.split(",")[0].strip())
    return str(request.client.host) if request.client else "unknown"


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return str(getattr(route, "path", request.url.path))


class MonitoringMiddleware(BaseHTTPMiddleware):
    """
    Monitoring middleware providing:
    - Request id propagation (X-Request-ID)
    - Prometheus request metrics
    - Structured request logging
    """

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self.metrics = http_metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = _client_ip(request)
        start_time = time.time()

        self.metrics.active_requests.inc()
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            self.metrics.record_error(e.__class__.__name__, _endpoint_label(request))
            struct_logger.error(
                "request_failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration=duration,
                error=str(e),
                error_type=e.__class__.__name__,
                client_ip=client_ip,
            )
            raise
        finally:
            self.metrics.active_requests.dec()

        duration = time.time() - start_time
        endpoint = _endpoint_label(request)
        self.metrics.record_request(request.method, endpoint, response.status_code, duration)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        slow = duration > settings.monitoring.SLOW_REQUEST_THRESHOLD
        log = struct_logger.warning if slow else struct_logger.info
        log(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=duration,
            client_ip=client_ip,
        )
        return response


async def get_health_status() -> Dict[str, Any]:
    """Health status of the database and cache"""
    from tix.core.database_manager import db_manager
    from tix.utils import cache

    db_health = await db_manager.health_check()
    cache_health = await cache.health_check()

    overall_status = "healthy"
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"
    elif cache_health.get("status") == "error":
        overall_status = "degraded"

    return {
        "status": overall_status,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": time.time(),
        "database": db_health,
        "cache": cache_health,
    }


async def get_prometheus_metrics() -> str:
    """Get Prometheus metrics"""
    return str(generate_latest().decode("utf-8"))
