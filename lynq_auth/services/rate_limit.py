from __future__ import annotations
from fastapi import HTTPException, Request, status
from redis import asyncio as aioredis

from ..config import Settings
from ..deps import get_backends


# ---- generic token counter (fixed window) ----
async def _hit(r: aioredis.Redis, key: str, window_sec: int, limit: int) -> None:
    count = await r.incr(key)
    if count == 1:
        await r.expire(key, window_sec)
    if count > limit:
        ttl = await r.ttl(key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please wait a moment and try again.",
            headers={"Retry-After": str(max(ttl, 1)) if ttl and ttl > 0 else "10"},
        )


def _client_ip(req: Request) -> str:
    # prefer X-Forwarded-For (first hop), fallback to uvicorn client
    h = req.headers.get("x-forwarded-for")
    if h:
        return h.split(",")[0].strip()
    return req.client.host if req.client else "unknown"


def _settings(req: Request) -> Settings:
    return req.app.state.settings


# ---- public helpers (used as route dependencies) ----
async def limit_otp_request(request: Request) -> None:
    s = _settings(request)
    r = get_backends(request).redis
    if not s.RATE_LIMIT_ENABLED or r is None:
        return
    ip = _client_ip(request)
    await _hit(r, f"rl:otp:req:ip:{ip}", window_sec=10, limit=s.RL_OTP_REQ_PER_IP_10S)


async def limit_otp_verify(request: Request) -> None:
    s = _settings(request)
    r = get_backends(request).redis
    if not s.RATE_LIMIT_ENABLED or r is None:
        return
    ip = _client_ip(request)
    await _hit(r, f"rl:otp:verify:ip:{ip}", window_sec=10, limit=s.RL_OTP_VERIFY_PER_IP_10S)
