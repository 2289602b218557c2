from __future__ import annotations
import time
from fastapi import Response, Request
from prometheus_client import (
    Counter, Histogram, CollectorRegistry,
    CONTENT_TYPE_LATEST, generate_latest
)

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- Metric definitions ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram("http_request_duration_seconds", "HTTP request latency", ["method", "path"], registry=REGISTRY)

OTP_ISSUED     = Counter("otp_issued_total", "Verification codes issued", ["purpose"], registry=REGISTRY)
OTP_VERIFY     = Counter("otp_verify_total", "Verification attempts", ["result"], registry=REGISTRY)
EMAIL_FAILURES = Counter("email_delivery_failures_total", "Verification emails that failed to send", registry=REGISTRY)
CODES_SWEPT    = Counter("otp_expired_swept_total", "Expired codes removed by the sweeper", registry=REGISTRY)


# ---------- /metrics endpoint factory ----------
def metrics_app(enabled: bool = True):
    async def _metrics(_: Request):
        if not enabled:
            return Response(status_code=404)
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)
    return _metrics


# ---------- HTTP middleware for latency/counters ----------
def _route_label(scope) -> str:
    # route template, not the raw URL, so label cardinality stays bounded
    route = scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsHTTPMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        method = scope["method"]
        t0 = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status = message["status"]
                path = _route_label(scope)
                HTTP_REQS.labels(method=method, path=path, status=status).inc()
                HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - t0)
            await send(message)

        await self.app(scope, receive, send_wrapper)
