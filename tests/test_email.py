import httpx
import pytest

from lynq_auth.config import Settings
from lynq_auth.domain.errors import DeliveryError
from lynq_auth.services.email import (
    ConsoleEmailSender, ResendEmailSender, SmtpEmailSender, build_email_sender, render_verification_email,
)

pytestmark = pytest.mark.asyncio


def _render(**kw):
    args = dict(to="a@x.com", sender="Lynq <no-reply@lynq.app>", name="a", code="123456",
                purpose="signup", ttl_minutes=10, support_email="help@lynq.app")
    args.update(kw)
    return render_verification_email(**args)


async def test_render_signup_message():
    msg = _render()
    assert msg.to == "a@x.com"
    assert msg.subject == "Verify your Lynq account"
    assert "123456" in msg.html and "123456" in msg.text
    assert "10 minutes" in msg.text


async def test_render_login_message_and_escaping():
    msg = _render(purpose="login", name="<b>eve</b>")
    assert msg.subject == "Your Lynq sign-in code"
    assert "&lt;b&gt;eve&lt;/b&gt;" in msg.html
    assert "<b>eve</b>" not in msg.html


async def test_resend_sender_posts_message():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"id": "em_1"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sender = ResendEmailSender(api_key="re_test", api_url="https://api.resend.test/emails", client=client)
        await sender.send(_render())

    assert seen["auth"] == "Bearer re_test"
    assert b'"subject":"Verify your Lynq account"' in seen["body"].replace(b": ", b":")


async def test_resend_sender_raises_delivery_error_on_rejection():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad from"}))
    async with httpx.AsyncClient(transport=transport) as client:
        sender = ResendEmailSender(api_key="re_test", api_url="https://api.resend.test/emails", client=client)
        with pytest.raises(DeliveryError):
            await sender.send(_render())


async def test_smtp_sender_wraps_connection_errors(monkeypatch):
    sender = SmtpEmailSender(host="smtp.invalid", port=587, user="u", password="p", timeout=1)

    def refuse(message):
        raise ConnectionRefusedError("nope")

    monkeypatch.setattr(sender, "_send_sync", refuse)
    with pytest.raises(DeliveryError):
        await sender.send(_render())


async def test_build_email_sender_by_provider():
    assert isinstance(build_email_sender(Settings(_env_file=None, EMAIL_PROVIDER="console")), ConsoleEmailSender)
    smtp = Settings(_env_file=None, EMAIL_PROVIDER="smtp", SMTP_HOST="smtp.x.com", SMTP_USER="u")
    assert isinstance(build_email_sender(smtp), SmtpEmailSender)
    resend = Settings(_env_file=None, EMAIL_PROVIDER="resend", RESEND_API_KEY="re_x")
    assert isinstance(build_email_sender(resend), ResendEmailSender)
    with pytest.raises(RuntimeError):
        build_email_sender(Settings(_env_file=None, EMAIL_PROVIDER="smtp"))
