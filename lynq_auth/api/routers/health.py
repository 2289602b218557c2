from fastapi import APIRouter, Request
from ...deps import get_backends

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    return {"status": "ok", "message": "Lynq API is running"}


@router.get("/readiness")
async def readiness(request: Request):
    s = request.app.state.settings
    backends = get_backends(request)
    db_ok = await backends.health()
    # redis only backs rate limiting; skip it when limits are off
    redis_ok = await backends.redis_health() if s.RATE_LIMIT_ENABLED else None
    ready = db_ok and redis_ok is not False
    return {"ready": ready, "store": db_ok, "redis": redis_ok}


@router.get("/liveness")
async def liveness():
    return {"alive": True}
