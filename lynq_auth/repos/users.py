from __future__ import annotations
import uuid
from typing import Any, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from ..domain.errors import UserNotFound
from ..models import User
from .base import store_session

UPDATABLE = {"password_hash", "name", "is_verified"}


class SqlUserStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def find_by_email(self, email: str) -> Optional[User]:
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(select(User).where(User.email == email))
            return res.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(select(User).where(User.id == user_id))
            return res.scalar_one_or_none()

    async def create(self, *, email: str, password_hash: str, name: str) -> User:
        async with store_session(self._sessionmaker) as db:
            user = User(email=email, password_hash=password_hash, name=name, is_verified=False)
            db.add(user)
            # IntegrityError on a duplicate email becomes Conflict in store_session
            await db.commit()
            await db.refresh(user)
            return user

    async def update(self, email: str, **fields: Any) -> User:
        unknown = set(fields) - UPDATABLE
        if unknown:
            raise ValueError(f"cannot update user fields: {', '.join(sorted(unknown))}")
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(
                update(User)
                .where(User.email == email)
                .values(**fields, updated_at=func.now())
                .returning(User)
            )
            user = res.scalar_one_or_none()
            if user is None:
                await db.rollback()
                raise UserNotFound()
            await db.commit()
            return user
