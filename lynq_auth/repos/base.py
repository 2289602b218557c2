from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import Conflict, StoreError
from ..models import User, VerificationCode


class UserStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[User]: ...
    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]: ...
    async def create(self, *, email: str, password_hash: str, name: str) -> User: ...
    async def update(self, email: str, **fields: Any) -> User: ...


class CodeStore(Protocol):
    async def delete_all_for_email(self, email: str) -> int: ...
    async def create(self, *, email: str, code: str, purpose: str, expires_at: datetime) -> VerificationCode: ...
    async def find_latest_by_email_and_code(self, email: str, code: str) -> Optional[VerificationCode]: ...
    async def delete_by_id(self, code_id: uuid.UUID) -> bool: ...
    async def delete_expired(self, now: datetime) -> int: ...


@asynccontextmanager
async def store_session(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """One session per store call; driver failures surface as StoreError."""
    try:
        async with sessionmaker() as db:
            yield db
    except IntegrityError as e:
        raise Conflict() from e
    except (SQLAlchemyError, OSError) as e:
        raise StoreError() from e
