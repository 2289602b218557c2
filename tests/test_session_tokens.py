import uuid
from datetime import timedelta

import jwt
import pytest

from lynq_auth.auth import jwt as jwt_module
from lynq_auth.auth.jwt import TokenIssuer
from lynq_auth.auth.passwords import PasswordHasher

pytestmark = pytest.mark.asyncio


async def test_mint_embeds_identity(tokens):
    uid = uuid.uuid4()
    claims = tokens.verify(tokens.mint(uid, "a@x.com"))
    assert claims["id"] == str(uid)
    assert claims["sub"] == str(uid)
    assert claims["email"] == "a@x.com"
    assert claims["iss"] == claims["aud"] == "lynq-auth"


async def test_token_signed_with_other_secret_is_rejected(tokens):
    other = TokenIssuer("another-secret", "lynq-auth", timedelta(days=7))
    with pytest.raises(jwt.InvalidSignatureError):
        tokens.verify(other.mint(uuid.uuid4(), "a@x.com"))


async def test_expired_token_is_rejected(tokens, monkeypatch):
    token = tokens.mint(uuid.uuid4(), "a@x.com")
    real_now = jwt_module._now()
    monkeypatch.setattr(jwt_module, "_now", lambda: real_now - 8 * 24 * 3600)
    stale = tokens.mint(uuid.uuid4(), "a@x.com")
    with pytest.raises(jwt.ExpiredSignatureError):
        tokens.verify(stale)
    assert tokens.verify(token)


async def test_password_hash_roundtrip():
    hasher = PasswordHasher(rounds=4)
    hashed = await hasher.hash("Abcdef1!")
    assert hashed.startswith("$2")
    assert await hasher.verify("Abcdef1!", hashed)
    assert not await hasher.verify("Abcdef1?", hashed)
    assert not await hasher.verify("Abcdef1!", "not-a-bcrypt-hash")
