from fastapi import APIRouter
from ...observability.metrics import metrics_app


def build_router(enabled: bool) -> APIRouter:
    router = APIRouter(tags=["metrics"])
    router.add_api_route("/metrics", metrics_app(enabled), methods=["GET"], include_in_schema=False)
    return router
