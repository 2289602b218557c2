from __future__ import annotations
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone

from ..domain.errors import DeliveryError
from ..models import CODE_PURPOSES
from ..observability.metrics import EMAIL_FAILURES, OTP_ISSUED
from ..repos.base import CodeStore
from .email import EmailSender, render_verification_email

log = logging.getLogger("lynq_auth.otp")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int = 6) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


class OtpIssuer:
    """Creates the single active code for an email and mails it out.

    Any prior code for the email is removed first. If delivery fails the new
    code is deleted again, so a code never outlives an email nobody received.
    """

    def __init__(
        self,
        codes: CodeStore,
        mailer: EmailSender,
        *,
        sender: str,
        support_email: str,
        ttl: timedelta = timedelta(minutes=10),
        length: int = 6,
    ) -> None:
        self._codes = codes
        self._mailer = mailer
        self._sender = sender
        self._support_email = support_email
        self.ttl = ttl
        self.length = length

    async def issue(self, email: str, purpose: str, *, name: str) -> str:
        if purpose not in CODE_PURPOSES:
            raise ValueError(f"unknown code purpose: {purpose!r}")

        code = generate_code(self.length)
        expires_at = _now_utc() + self.ttl

        await self._codes.delete_all_for_email(email)
        record = await self._codes.create(email=email, code=code, purpose=purpose, expires_at=expires_at)

        message = render_verification_email(
            to=email,
            sender=self._sender,
            name=name,
            code=code,
            purpose=purpose,
            ttl_minutes=int(self.ttl.total_seconds() // 60),
            support_email=self._support_email,
        )
        try:
            await self._mailer.send(message)
        except Exception as e:
            EMAIL_FAILURES.inc()
            log.warning("otp_delivery_failed", extra={"email": email, "purpose": purpose})
            await self._codes.delete_by_id(record.id)
            if isinstance(e, DeliveryError):
                raise
            raise DeliveryError() from e

        OTP_ISSUED.labels(purpose=purpose).inc()
        log.info("otp_issued", extra={"email": email, "purpose": purpose})
        return code
