"""Third-party sign-in. Only the seam exists; no provider is wired up yet."""
from __future__ import annotations
from typing import Protocol

from ..domain.errors import NotImplementedFeature


class OAuthProvider(Protocol):
    name: str

    def authorization_url(self, state: str) -> str: ...
    async def exchange_code(self, code: str) -> dict: ...


class GoogleOAuthProvider:
    name = "google"

    def authorization_url(self, state: str) -> str:
        raise NotImplementedFeature("Google sign-in is not available yet")

    async def exchange_code(self, code: str) -> dict:
        raise NotImplementedFeature("Google sign-in is not available yet")


PROVIDERS: dict[str, OAuthProvider] = {"google": GoogleOAuthProvider()}
