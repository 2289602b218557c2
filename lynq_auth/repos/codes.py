from __future__ import annotations
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import select, delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from ..models import VerificationCode
from .base import store_session


class SqlCodeStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def delete_all_for_email(self, email: str) -> int:
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(delete(VerificationCode).where(VerificationCode.email == email))
            await db.commit()
            return res.rowcount or 0

    async def create(self, *, email: str, code: str, purpose: str, expires_at: datetime) -> VerificationCode:
        # uq(email) makes concurrent issuance last-writer-wins instead of leaving two live rows
        values = dict(id=uuid.uuid4(), email=email, code=code, purpose=purpose, expires_at=expires_at)
        stmt = (
            pg_insert(VerificationCode)
            .values(**values)
            .on_conflict_do_update(
                index_elements=[VerificationCode.email],
                set_={
                    "id": values["id"],
                    "code": code,
                    "purpose": purpose,
                    "expires_at": expires_at,
                    "created_at": func.now(),
                },
            )
            .returning(VerificationCode)
        )
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(stmt, execution_options={"populate_existing": True})
            row = res.scalar_one()
            await db.commit()
            return row

    async def find_latest_by_email_and_code(self, email: str, code: str) -> Optional[VerificationCode]:
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(
                select(VerificationCode)
                .where(VerificationCode.email == email, VerificationCode.code == code)
                .order_by(VerificationCode.created_at.desc())
                .limit(1)
            )
            return res.scalar_one_or_none()

    async def delete_by_id(self, code_id: uuid.UUID) -> bool:
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(delete(VerificationCode).where(VerificationCode.id == code_id))
            await db.commit()
            return bool(res.rowcount)

    async def delete_expired(self, now: datetime) -> int:
        async with store_session(self._sessionmaker) as db:
            res = await db.execute(delete(VerificationCode).where(VerificationCode.expires_at < now))
            await db.commit()
            return res.rowcount or 0
