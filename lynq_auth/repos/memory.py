"""Process-local stores. Used by the test suite and STORE_BACKEND=memory."""
from __future__ import annotations
import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..domain.errors import Conflict, UserNotFound
from ..models import User, VerificationCode
from .users import UPDATABLE


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _copy_user(u: User) -> User:
    return User(
        id=u.id, email=u.email, password_hash=u.password_hash, name=u.name,
        is_verified=u.is_verified, created_at=u.created_at, updated_at=u.updated_at,
    )


def _copy_code(c: VerificationCode) -> VerificationCode:
    return VerificationCode(
        id=c.id, email=c.email, code=c.code, purpose=c.purpose,
        expires_at=c.expires_at, created_at=c.created_at,
    )


class InMemoryUserStore:
    def __init__(self) -> None:
        self._by_email: Dict[str, User] = {}
        self._lock = asyncio.Lock()

    async def find_by_email(self, email: str) -> Optional[User]:
        u = self._by_email.get(email)
        return _copy_user(u) if u else None

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        for u in self._by_email.values():
            if u.id == user_id:
                return _copy_user(u)
        return None

    async def create(self, *, email: str, password_hash: str, name: str) -> User:
        async with self._lock:
            if email in self._by_email:
                raise Conflict()
            now = _now_utc()
            u = User(
                id=uuid.uuid4(), email=email, password_hash=password_hash, name=name,
                is_verified=False, created_at=now, updated_at=now,
            )
            self._by_email[email] = u
            return _copy_user(u)

    async def update(self, email: str, **fields: Any) -> User:
        unknown = set(fields) - UPDATABLE
        if unknown:
            raise ValueError(f"cannot update user fields: {', '.join(sorted(unknown))}")
        async with self._lock:
            u = self._by_email.get(email)
            if u is None:
                raise UserNotFound()
            for k, v in fields.items():
                setattr(u, k, v)
            u.updated_at = _now_utc()
            return _copy_user(u)


class InMemoryCodeStore:
    def __init__(self) -> None:
        self._rows: List[VerificationCode] = []
        self._lock = asyncio.Lock()

    async def delete_all_for_email(self, email: str) -> int:
        async with self._lock:
            before = len(self._rows)
            self._rows = [c for c in self._rows if c.email != email]
            return before - len(self._rows)

    async def create(self, *, email: str, code: str, purpose: str, expires_at: datetime) -> VerificationCode:
        async with self._lock:
            # same effect as the uq(email) upsert in the SQL store
            self._rows = [c for c in self._rows if c.email != email]
            row = VerificationCode(
                id=uuid.uuid4(), email=email, code=code, purpose=purpose,
                expires_at=expires_at, created_at=_now_utc(),
            )
            self._rows.append(row)
            return _copy_code(row)

    async def find_latest_by_email_and_code(self, email: str, code: str) -> Optional[VerificationCode]:
        matches = [c for c in self._rows if c.email == email and c.code == code]
        if not matches:
            return None
        return _copy_code(max(matches, key=lambda c: c.created_at))

    async def delete_by_id(self, code_id: uuid.UUID) -> bool:
        async with self._lock:
            before = len(self._rows)
            self._rows = [c for c in self._rows if c.id != code_id]
            return len(self._rows) != before

    async def delete_expired(self, now: datetime) -> int:
        async with self._lock:
            before = len(self._rows)
            self._rows = [c for c in self._rows if c.expires_at >= now]
            return before - len(self._rows)

    def active_for(self, email: str) -> List[VerificationCode]:
        return [_copy_code(c) for c in self._rows if c.email == email]
