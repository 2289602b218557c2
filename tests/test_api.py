from fastapi.testclient import TestClient

from lynq_auth.domain.errors import StoreError
from lynq_auth.main import create_app
from lynq_auth.observability.metrics import REGISTRY
from lynq_auth.services.rate_limit import limit_otp_request


def _signup(client, email="a@x.com", password="Abcdef1!"):
    return client.post("/api/auth/signup", json={"email": email, "password": password})


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "message": "Lynq API is running"}


def test_readiness_with_memory_store(client):
    r = client.get("/health/readiness")
    assert r.status_code == 200
    assert r.json()["ready"] is True


def test_signup_verify_scenario(client, mailer):
    r = _signup(client)
    assert r.status_code == 201
    assert r.json() == {"success": True, "message": "Verification code sent to email", "email": "a@x.com"}

    code = mailer.last_code("a@x.com")
    wrong = "000000" if code != "000000" else "111111"

    r = client.post("/api/auth/verify-code", json={"email": "a@x.com", "code": wrong})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Invalid verification code"}

    r = client.post("/api/auth/verify-code", json={"email": "a@x.com", "code": code})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Verification successful"
    assert body["token"]
    assert set(body["user"]) == {"id", "email", "name", "isVerified"}
    assert body["user"]["isVerified"] is True
    assert body["user"]["email"] == "a@x.com"

    r = client.post("/api/auth/verify-code", json={"email": "a@x.com", "code": code})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid verification code"


def test_signup_validation_errors(client):
    r = client.post("/api/auth/signup", json={"email": "a@x.com"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Email and password are required"}

    r = _signup(client, email="not-an-email")
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid email format"

    r = _signup(client, password="weak")
    assert r.status_code == 400
    assert r.json()["message"] == "Password must be at least 8 characters long"


def test_malformed_body_is_400(client):
    r = client.post("/api/auth/signup", json={"email": 5, "password": ["x"]})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_resumed_signup_looks_the_same(client):
    first = _signup(client)
    second = _signup(client, password="Xyzxyz9?")
    assert second.status_code == first.status_code == 201
    assert second.json() == first.json()


def test_signup_existing_verified_account(client, mailer):
    _signup(client)
    client.post("/api/auth/verify-code", json={"email": "a@x.com", "code": mailer.last_code("a@x.com")})

    r = _signup(client)
    assert r.status_code == 409
    assert r.json() == {
        "success": False,
        "message": "Account already exists. Please login instead.",
        "accountExists": True,
    }


def test_login_flow(client, mailer):
    r = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Abcdef1!"})
    assert r.status_code == 404
    assert r.json()["message"] == "Account not found. Please sign up first."

    _signup(client)
    client.post("/api/auth/verify-code", json={"email": "a@x.com", "code": mailer.last_code("a@x.com")})

    r = client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["message"] == "Incorrect password. Please try again."

    r = client.post("/api/auth/login", json={"email": "A@X.com", "password": "Abcdef1!"})
    assert r.status_code == 200
    body = r.json()
    assert body["needsVerification"] is True
    assert body["email"] == "a@x.com"
    assert "token" not in body

    r = client.post("/api/auth/verify-code", json={"email": "a@x.com", "code": mailer.last_code("a@x.com")})
    assert r.status_code == 200
    assert r.json()["token"]


def test_login_requires_fields(client):
    r = client.post("/api/auth/login", json={"password": "Abcdef1!"})
    assert r.status_code == 400
    assert r.json()["message"] == "Email and password are required"


def test_resend_code(client, mailer):
    r = client.post("/api/auth/resend-code", json={"email": "a@x.com"})
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "User not found"}

    _signup(client)
    r = client.post("/api/auth/resend-code", json={"email": "a@x.com"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "New verification code sent to email"}
    assert len(mailer.sent) == 2

    r = client.post("/api/auth/resend-code", json={})
    assert r.status_code == 400
    assert r.json()["message"] == "Email is required"


def test_delivery_failure_is_hidden_from_client(client, mailer, backends):
    mailer.fail = True
    r = _signup(client)
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Signup failed. Please try again."}
    assert backends.codes.active_for("a@x.com") == []


def test_store_failure_is_hidden_from_client(client, backends, monkeypatch):
    async def boom(email):
        raise StoreError()

    monkeypatch.setattr(backends.users, "find_by_email", boom)
    r = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Abcdef1!"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Login failed. Please try again."}


def test_me_requires_bearer_token(client, mailer):
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["success"] is False

    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    _signup(client)
    token = client.post(
        "/api/auth/verify-code", json={"email": "a@x.com", "code": mailer.last_code("a@x.com")}
    ).json()["token"]
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "a@x.com"


def test_google_sign_in_is_not_available(client):
    r = client.get("/api/auth/oauth/google")
    assert r.status_code == 501
    assert r.json()["success"] is False

    r = client.get("/api/auth/oauth/myspace")
    assert r.status_code == 404


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert client.get("/health").headers["X-Request-ID"]


def test_metrics_endpoint(client):
    _signup(client)
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "otp_issued_total" in r.text


def test_unexpected_error_keeps_json_envelope(settings, backends, mailer):
    async def redis_down():
        raise ConnectionError("redis unreachable")

    app = create_app(settings, backends)
    app.dependency_overrides[limit_otp_request] = redis_down
    with TestClient(app, raise_server_exceptions=False) as c:
        r = _signup(c)

    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json() == {"success": False, "message": "Something went wrong. Please try again."}
    assert mailer.sent == []


def test_metrics_label_by_route_template(client):
    client.get("/api/auth/oauth/myspace")
    client.get("/no/such/page")

    sample = REGISTRY.get_sample_value(
        "http_requests_total", {"method": "GET", "path": "/api/auth/oauth/{provider}", "status": "404"},
    )
    assert sample and sample >= 1
    assert REGISTRY.get_sample_value(
        "http_requests_total", {"method": "GET", "path": "/api/auth/oauth/myspace", "status": "404"},
    ) is None
    assert REGISTRY.get_sample_value(
        "http_requests_total", {"method": "GET", "path": "unmatched", "status": "404"},
    ) >= 1


class _CountingRedis:
    """Just enough of a Redis client for the fixed-window limiter."""

    def __init__(self):
        self.counts = {}
        self.closed = False

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        return True

    async def ttl(self, key):
        return 7

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


def test_rate_limit_uses_backends_redis(settings, backends):
    limited = settings.model_copy(update={"RATE_LIMIT_ENABLED": True, "RL_OTP_REQ_PER_IP_10S": 1})
    backends.redis = _CountingRedis()
    with TestClient(create_app(limited, backends)) as c:
        assert _signup(c).status_code == 201
        r = _signup(c, email="b@x.com")
        assert r.status_code == 429
        assert r.headers["Retry-After"] == "7"
        assert r.json()["success"] is False
        assert c.get("/health/readiness").json()["redis"] is True

    assert backends.redis.closed is True
