from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from fastapi import Request
from redis import asyncio as aioredis

from .auth.jwt import TokenIssuer
from .auth.passwords import PasswordHasher
from .config import Settings
from .db import Database
from .repos.base import CodeStore, UserStore
from .repos.codes import SqlCodeStore
from .repos.memory import InMemoryCodeStore, InMemoryUserStore
from .repos.users import SqlUserStore
from .services.auth_flow import AuthService
from .services.email import EmailSender, build_email_sender, sender_address
from .services.otp import OtpIssuer
from .services.verifier import Verifier

log = logging.getLogger("lynq_auth.deps")


@dataclass
class Backends:
    """Everything with a lifecycle: stores, mailer, and the database and Redis behind them."""

    users: UserStore
    codes: CodeStore
    mailer: EmailSender
    database: Optional[Database] = None
    redis: Optional[aioredis.Redis] = None
    started: bool = field(default=False, init=False)

    async def startup(self) -> None:
        if self.database is not None:
            await self.database.connect()
        self.started = True

    async def shutdown(self) -> None:
        if self.database is not None:
            await self.database.close()
        if self.redis is not None:
            await self.redis.aclose()
        self.started = False

    async def health(self) -> bool:
        if self.database is None:
            return True
        return await self.database.health()

    async def redis_health(self) -> Optional[bool]:
        if self.redis is None:
            return None
        try:
            return bool(await self.redis.ping())
        except Exception:
            return False


def build_backends(s: Settings) -> Backends:
    mailer = build_email_sender(s)
    # from_url is lazy; no connection until the first command
    redis = aioredis.from_url(s.REDIS_URL, encoding="utf-8", decode_responses=True)
    if s.STORE_BACKEND == "memory":
        log.warning("Using in-memory stores; data is lost on restart")
        return Backends(users=InMemoryUserStore(), codes=InMemoryCodeStore(), mailer=mailer, redis=redis)
    database = Database(s.DATABASE_URL, slow_query_ms=s.SLOW_QUERY_MS)
    return Backends(
        users=SqlUserStore(database.sessionmaker),
        codes=SqlCodeStore(database.sessionmaker),
        mailer=mailer,
        database=database,
        redis=redis,
    )


def build_auth_service(s: Settings, backends: Backends, tokens: TokenIssuer) -> AuthService:
    issuer = OtpIssuer(
        backends.codes,
        backends.mailer,
        sender=sender_address(s),
        support_email=s.SUPPORT_EMAIL,
        ttl=timedelta(minutes=s.OTP_TTL_MINUTES),
        length=s.OTP_LENGTH,
    )
    verifier = Verifier(backends.users, backends.codes, tokens)
    return AuthService(backends.users, issuer, verifier, PasswordHasher(rounds=s.BCRYPT_ROUNDS))


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_backends(request: Request) -> Backends:
    return request.app.state.backends
