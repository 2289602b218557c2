from __future__ import annotations
import time
from datetime import timedelta
from typing import Any, Dict
import uuid
import jwt  # PyJWT

from ..config import Settings

ALGO = "HS256"


def _now() -> int:
    return int(time.time())


def create_jwt(payload: Dict[str, Any], expires_in: timedelta, *, secret: str, issuer: str) -> str:
    iat = _now()
    exp = iat + int(expires_in.total_seconds())
    to_encode = {
        "iss": issuer,
        "aud": issuer,
        "iat": iat,
        "exp": exp,
        **payload,
    }
    return jwt.encode(to_encode, secret, algorithm=ALGO)


def verify_jwt(token: str, *, secret: str, issuer: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        secret,
        algorithms=[ALGO],
        audience=issuer,
        issuer=issuer,
    )


class TokenIssuer:
    """Mints stateless session tokens; validity is signature + embedded expiry only."""

    def __init__(self, secret: str, issuer: str, ttl: timedelta) -> None:
        self._secret = secret
        self._issuer = issuer
        self.ttl = ttl

    @classmethod
    def from_settings(cls, s: Settings) -> "TokenIssuer":
        return cls(s.JWT_SECRET, s.APP_NAME, timedelta(minutes=s.JWT_EXPIRE_MINUTES))

    def mint(self, user_id: uuid.UUID | str, email: str) -> str:
        return create_jwt(
            {"sub": str(user_id), "id": str(user_id), "email": email},
            expires_in=self.ttl,
            secret=self._secret,
            issuer=self._issuer,
        )

    def verify(self, token: str) -> Dict[str, Any]:
        return verify_jwt(token, secret=self._secret, issuer=self._issuer)
