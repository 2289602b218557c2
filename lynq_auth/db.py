import logging, time
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy import text, event

log = logging.getLogger("lynq_auth.sql")


class Database:
    """Async engine + session factory with an explicit connect/close lifecycle."""

    def __init__(self, url: str, *, slow_query_ms: int = 300) -> None:
        self.engine: AsyncEngine = create_async_engine(
            url,
            future=True,
            pool_pre_ping=True,
        )
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)
        self._slow_query_ms = slow_query_ms
        event.listen(self.engine.sync_engine, "before_cursor_execute", _before_cursor_execute)
        event.listen(self.engine.sync_engine, "after_cursor_execute", self._after_cursor_execute)

    async def connect(self) -> None:
        # fail fast on startup if the database is unreachable
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        log.info("database_connected")

    async def close(self) -> None:
        await self.engine.dispose()

    async def health(self) -> bool:
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        elapsed_ms = int((time.perf_counter() - getattr(context, "_query_start_time", time.perf_counter())) * 1000)
        if elapsed_ms >= self._slow_query_ms:
            log.warning("slow_query", extra={"elapsed_ms": elapsed_ms, "sql": statement[:200]})


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.perf_counter()
