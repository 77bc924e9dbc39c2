"""
TLV Engine - API Middleware
Request logging, security headers, CORS and the metrics endpoint.
"""

import time
import logging
import uuid
from typing import Callable, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from ..core.config import TlvEngineConfig

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# Prometheus metrics
HTTP_REQUESTS = Counter(
    "tlv_http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status_code"],
)

HTTP_REQUEST_LATENCY = Histogram(
    "tlv_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

# Responses carry decoded card data
SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Cache-Control": "no-store",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "no-referrer",
}


def _route_label(request: Request) -> str:
    """
    Full route template of the matched endpoint, including the API prefix.

    Templates keep path parameters out of the label values.
    """
    root_path = request.scope.get("root_path", "")
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return f"{root_path}{route.path}"
    return "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its correlation ID and record HTTP metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        route = _route_label(request)
        HTTP_REQUESTS.labels(
            method=request.method, route=route, status_code=response.status_code
        ).inc()
        HTTP_REQUEST_LATENCY.labels(method=request.method, route=route).observe(elapsed)

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed * 1000:.1f} ms [{correlation_id}]",
            extra={
                "correlation_id": correlation_id,
                "client_ip": request.client.host if request.client else None,
            },
        )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach SECURITY_HEADERS to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def setup_prometheus_metrics(app: FastAPI):
    """Expose the default Prometheus registry at /metrics."""

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    logger.info("Metrics exposed at /metrics")


def setup_middleware(app: FastAPI, config: TlvEngineConfig):
    """
    Install middleware on the application.

    Starlette runs the last added middleware first, so request logging
    wraps security headers, which wrap CORS.
    """
    origins = list(config.cors_origins) or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_HEADER],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    if config.enable_metrics:
        setup_prometheus_metrics(app)
