"""Verification emails: one renderer, pluggable delivery providers."""
from __future__ import annotations

import asyncio
import html as html_lib
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Optional, Protocol

import httpx

from ..config import Settings
from ..domain.errors import DeliveryError

logger = logging.getLogger(__name__)

BRAND = "Lynq"
TAGLINE = "Where conversations flow naturally"


@dataclass(frozen=True)
class EmailMessage:
    to: str
    from_: str
    subject: str
    html: str
    text: str


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


# ---------- rendering ----------
def render_verification_email(
    *,
    to: str,
    sender: str,
    name: str,
    code: str,
    purpose: str,
    ttl_minutes: int,
    support_email: str,
) -> EmailMessage:
    if purpose == "login":
        subject = f"Your {BRAND} sign-in code"
        intro = (
            f"Someone is signing in to your <strong>{BRAND}</strong> account. "
            "If it was you, enter the code below to finish signing in."
        )
        intro_text = f"Use this code to finish signing in to {BRAND}."
        ignore = "If you didn't try to sign in, someone may know your password. Consider changing it."
    else:
        subject = f"Verify your {BRAND} account"
        intro = (
            f"Welcome to <strong>{BRAND}</strong>! To complete your registration "
            "and start connecting, please verify your email address."
        )
        intro_text = f"Welcome to {BRAND}! Use this code to verify your email address."
        ignore = f"If you didn't create a {BRAND} account, you can ignore this email."

    safe_name = html_lib.escape(name)
    year = datetime.now(timezone.utc).year
    html = f"""
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"><title>{subject}</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background: #f4f4f8; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 16px; overflow: hidden;">
    <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 40px 30px; text-align: center;">
      <h1 style="color: #ffffff; margin: 0; font-size: 32px;">{BRAND}</h1>
      <p style="color: rgba(255,255,255,0.9); margin-top: 10px; font-size: 14px;">{TAGLINE}</p>
    </div>
    <div style="padding: 40px 30px;">
      <p style="font-size: 20px; color: #333; font-weight: 600;">Hi {safe_name}!</p>
      <p style="font-size: 16px; color: #666; line-height: 1.8;">{intro}</p>
      <div style="background: #f7f7f7; border: 2px dashed #667eea; border-radius: 12px; padding: 30px; text-align: center; margin: 30px 0;">
        <div style="font-size: 14px; color: #666; text-transform: uppercase; letter-spacing: 1.5px;">Your Verification Code</div>
        <div style="font-size: 40px; font-weight: 700; color: #667eea; letter-spacing: 10px; font-family: 'Courier New', monospace;">{code}</div>
      </div>
      <div style="padding: 20px; background: #fff3cd; border-left: 4px solid #ffc107; border-radius: 8px; color: #856404;">
        This code will expire in <strong>{ttl_minutes} minutes</strong>.
      </div>
      <p style="margin-top: 30px; font-size: 13px; color: #999; text-align: center;">
        {ignore} Questions? <a href="mailto:{support_email}" style="color: #667eea;">{support_email}</a>
      </p>
    </div>
    <div style="background: #f9f9f9; padding: 30px; text-align: center; font-size: 14px; color: #999;">
      &copy; {year} {BRAND}. All rights reserved.
    </div>
  </div>
</body>
</html>
"""
    text = (
        f"Hi {name}!\n\n"
        f"{intro_text}\n\n"
        f"Your verification code is: {code}\n\n"
        f"This code expires in {ttl_minutes} minutes.\n\n"
        f"{ignore}\n\n"
        f"Best regards,\n{BRAND} Team"
    )
    return EmailMessage(to=to, from_=sender, subject=subject, html=html, text=text)


# ---------- providers ----------
class ConsoleEmailSender:
    """DEV sender: log the message instead of delivering it."""

    async def send(self, message: EmailMessage) -> None:
        logger.info("email_console_delivery", extra={"to": message.to, "subject": message.subject})
        logger.debug("email_console_body\n%s", message.text)


class SmtpEmailSender:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        user: str,
        password: str,
        timeout: int = 15,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._timeout = timeout

    def _send_sync(self, message: EmailMessage) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = message.from_
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls()
            server.login(self._user, self._password)
            server.sendmail(parseaddr(message.from_)[1] or self._user, [message.to], msg.as_string())

    async def send(self, message: EmailMessage) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, message)
        except smtplib.SMTPAuthenticationError as e:
            logger.error("SMTP login failed for %s: %s", message.to, e)
            raise DeliveryError() from e
        except (smtplib.SMTPException, OSError) as e:
            # OSError covers timeouts and refused connections
            logger.error("SMTP send to %s failed: %s", message.to, e)
            raise DeliveryError() from e
        logger.info("Verification email sent to %s via SMTP", message.to)


class ResendEmailSender:
    """Transactional email over the Resend HTTP API."""

    def __init__(self, *, api_key: str, api_url: str, timeout: float = 15.0,
                 client: Optional[httpx.AsyncClient] = None) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = timeout
        self._client = client

    async def send(self, message: EmailMessage) -> None:
        body = {
            "from": message.from_,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            if self._client is not None:
                resp = await self._client.post(self._api_url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._api_url, json=body, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Resend rejected email to %s: %s %s", message.to, e.response.status_code, e.response.text[:200])
            raise DeliveryError() from e
        except httpx.HTTPError as e:
            logger.error("Resend request for %s failed: %s", message.to, e)
            raise DeliveryError() from e
        logger.info("Verification email sent to %s via Resend", message.to)


def build_email_sender(s: Settings) -> EmailSender:
    if s.EMAIL_PROVIDER == "smtp":
        if not s.SMTP_HOST or not s.SMTP_USER:
            raise RuntimeError("EMAIL_PROVIDER=smtp requires SMTP_HOST and SMTP_USER")
        return SmtpEmailSender(
            host=s.SMTP_HOST,
            port=s.SMTP_PORT,
            user=s.SMTP_USER,
            password=s.SMTP_PASSWORD,
            timeout=s.SMTP_TIMEOUT_SECONDS,
        )
    if s.EMAIL_PROVIDER == "resend":
        if not s.RESEND_API_KEY:
            raise RuntimeError("EMAIL_PROVIDER=resend requires RESEND_API_KEY")
        return ResendEmailSender(api_key=s.RESEND_API_KEY, api_url=s.RESEND_API_URL)
    logger.info("Email delivery disabled; using console sender")
    return ConsoleEmailSender()


def sender_address(s: Settings) -> str:
    return f"{s.EMAIL_FROM_NAME} <{s.EMAIL_FROM}>"
