from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..auth.jwt import TokenIssuer
from ..domain.errors import CodeExpired, InvalidCode, UserNotFound
from ..models import User
from ..observability.metrics import OTP_VERIFY
from ..repos.base import CodeStore, UserStore

log = logging.getLogger("lynq_auth.verifier")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VerifiedSession:
    user: User
    token: str


class Verifier:
    """Exchanges a submitted code for a session token.

    A code is single-use: it is deleted on success, and deleted when found
    expired. Either way a second attempt with the same code is InvalidCode.
    """

    def __init__(self, users: UserStore, codes: CodeStore, tokens: TokenIssuer) -> None:
        self._users = users
        self._codes = codes
        self._tokens = tokens

    async def verify(self, email: str, submitted_code: str) -> VerifiedSession:
        stored = await self._codes.find_latest_by_email_and_code(email, submitted_code)
        if stored is None:
            OTP_VERIFY.labels(result="invalid").inc()
            log.info("otp_invalid", extra={"email": email})
            raise InvalidCode()

        if _now_utc() > stored.expires_at:
            await self._codes.delete_by_id(stored.id)
            OTP_VERIFY.labels(result="expired").inc()
            log.info("otp_expired", extra={"email": email})
            raise CodeExpired()

        user = await self._users.find_by_email(email)
        if user is None:
            OTP_VERIFY.labels(result="no_user").inc()
            raise UserNotFound()

        # consuming the row is the gate: of two concurrent attempts only one deletes it
        if not await self._codes.delete_by_id(stored.id):
            OTP_VERIFY.labels(result="invalid").inc()
            log.info("otp_already_consumed", extra={"email": email})
            raise InvalidCode()

        if not user.is_verified:
            user = await self._users.update(email, is_verified=True)
            log.info("user_verified", extra={"email": email})

        token = self._tokens.mint(user.id, user.email)
        OTP_VERIFY.labels(result="ok").inc()
        return VerifiedSession(user=user, token=token)
