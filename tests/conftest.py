import re
import pytest
from fastapi.testclient import TestClient

from lynq_auth.auth.jwt import TokenIssuer
from lynq_auth.config import Settings
from lynq_auth.deps import Backends, build_auth_service
from lynq_auth.domain.errors import DeliveryError
from lynq_auth.main import create_app
from lynq_auth.repos.memory import InMemoryCodeStore, InMemoryUserStore

CODE_RE = re.compile(r"Your verification code is: (\d+)")


class RecordingEmailSender:
    """Collects messages instead of sending them; flip ``fail`` to simulate an outage."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, message):
        if self.fail:
            raise DeliveryError()
        self.sent.append(message)

    def last_code(self, email: str) -> str:
        for msg in reversed(self.sent):
            if msg.to == email:
                return CODE_RE.search(msg.text).group(1)
        raise AssertionError(f"no email sent to {email}")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="test",
        STORE_BACKEND="memory",
        RATE_LIMIT_ENABLED=False,
        BCRYPT_ROUNDS=4,
        JWT_SECRET="test-secret",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def mailer():
    return RecordingEmailSender()


@pytest.fixture
def backends(mailer):
    return Backends(users=InMemoryUserStore(), codes=InMemoryCodeStore(), mailer=mailer)


@pytest.fixture
def tokens(settings):
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def svc(settings, backends, tokens):
    return build_auth_service(settings, backends, tokens)


@pytest.fixture
def client(settings, backends):
    with TestClient(create_app(settings, backends)) as c:
        yield c


# ---------- helpers ----------
async def mk_verified_user(svc, mailer, email: str, password: str = "Abcdef1!"):
    await svc.signup(email, password)
    session = await svc.verify_code(email, mailer.last_code(email))
    return session.user
