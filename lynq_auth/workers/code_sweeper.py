from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone

from ..config import get_settings
from ..deps import Backends, build_backends
from ..observability.logging import setup_logging
from ..observability.metrics import CODES_SWEPT

S = get_settings()
log = logging.getLogger("worker.code_sweeper")


def _lock_key() -> str: return "lock:code_sweeper"


async def _acquire_lock(r) -> bool:
    # Only one instance performs the sweep; others idle
    return await r.set(_lock_key(), "1", ex=S.CODE_SWEEP_LOCK_TTL_SEC, nx=True) is True


async def run_once(backends: Backends, *, use_lock: bool = True) -> int:
    if use_lock and not await _acquire_lock(backends.redis):
        return 0
    removed = await backends.codes.delete_expired(datetime.now(timezone.utc))
    if removed:
        CODES_SWEPT.inc(removed)
        log.info("swept %d expired codes", removed)
    return removed


async def run_forever() -> None:
    backends = build_backends(S)
    await backends.startup()
    try:
        while True:
            try:
                await run_once(backends)
            except Exception as e:
                log.exception("code_sweeper error: %s", e)
            await asyncio.sleep(S.CODE_SWEEP_INTERVAL_SEC)
    finally:
        await backends.shutdown()


def main():
    setup_logging(S.LOG_LEVEL)
    asyncio.run(run_forever())


if __name__ == "__main__":
    main()
