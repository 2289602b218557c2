from __future__ import annotations
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from ..observability.logging import get_request_id

log = logging.getLogger("lynq_auth.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, header: str = "X-Request-ID") -> None:
        super().__init__(app)
        self.header = header

    def _identity(self, request: Request) -> dict:
        auth = request.headers.get("authorization", "")
        if not auth.lower().startswith("bearer "):
            return {"user_id": "anonymous"}
        tokens = getattr(request.app.state, "tokens", None)
        if tokens is None:
            return {"user_id": "anonymous"}
        try:
            claims = tokens.verify(auth[7:].strip())
        except Exception:
            # invalid/expired token - identity stays anonymous
            return {"user_id": "anonymous"}
        return {"user_id": claims.get("id", "anonymous"), "user_email": claims.get("email")}

    async def dispatch(self, request: Request, call_next):
        rid = get_request_id(request, self.header)
        start = time.perf_counter()
        fields = {
            "request_id": rid,
            "path": request.url.path,
            "method": request.method,
            **self._identity(request),
        }

        try:
            response = await call_next(request)
        except Exception:
            fields["ms"] = int((time.perf_counter() - start) * 1000)
            log.error("unhandled_error", extra=fields)
            raise

        fields["ms"] = int((time.perf_counter() - start) * 1000)
        fields["status"] = response.status_code
        response.headers[self.header] = rid
        log.info("request", extra=fields)
        return response
