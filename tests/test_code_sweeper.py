from datetime import datetime, timedelta, timezone

import pytest

from lynq_auth.workers import code_sweeper

pytestmark = pytest.mark.asyncio


async def test_sweep_removes_only_expired_codes(backends):
    now = datetime.now(timezone.utc)
    await backends.codes.create(email="old@x.com", code="111111", purpose="signup",
                                expires_at=now - timedelta(minutes=1))
    await backends.codes.create(email="new@x.com", code="222222", purpose="login",
                                expires_at=now + timedelta(minutes=9))

    removed = await code_sweeper.run_once(backends, use_lock=False)

    assert removed == 1
    assert backends.codes.active_for("old@x.com") == []
    assert len(backends.codes.active_for("new@x.com")) == 1


async def test_sweep_skips_when_lock_is_held(backends, monkeypatch):
    async def taken(r):
        return False

    monkeypatch.setattr(code_sweeper, "_acquire_lock", taken)
    await backends.codes.create(email="old@x.com", code="111111", purpose="signup",
                                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

    assert await code_sweeper.run_once(backends) == 0
    assert len(backends.codes.active_for("old@x.com")) == 1
