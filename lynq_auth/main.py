from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .config import Settings, get_settings
from .auth.jwt import TokenIssuer
from .deps import Backends, build_auth_service, build_backends
from .api.errors import install_error_handlers
from .api.routers import auth as auth_router
from .api.routers import health as health_router
from .api.routers import oauth as oauth_router
from .api.routers import metrics as metrics_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware


def create_app(settings: Optional[Settings] = None, backends: Optional[Backends] = None) -> FastAPI:
    s = settings or get_settings()
    setup_logging(s.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        b = backends or build_backends(s)
        await b.startup()
        tokens = TokenIssuer.from_settings(s)
        app.state.backends = b
        app.state.tokens = tokens
        app.state.auth_service = build_auth_service(s, b, tokens)
        try:
            yield
        finally:
            await b.shutdown()

    app = FastAPI(title=s.APP_NAME, debug=s.DEBUG, lifespan=lifespan)
    app.state.settings = s

    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # then your custom middlewares
    app.add_middleware(RequestContextMiddleware, header=s.REQUEST_ID_HEADER)
    app.add_middleware(MetricsHTTPMiddleware)

    install_error_handlers(app)

    app.include_router(health_router.router)
    app.include_router(auth_router.router, prefix=s.API_PREFIX)
    app.include_router(oauth_router.router, prefix=f"{s.API_PREFIX}/oauth")
    app.include_router(metrics_router.build_router(s.METRICS_ENABLED))

    return app


def main() -> None:
    s = get_settings()
    uvicorn.run("lynq_auth.main:create_app", factory=True, host=s.APP_HOST, port=s.APP_PORT, reload=s.ENV == "dev")


if __name__ == "__main__":
    main()
