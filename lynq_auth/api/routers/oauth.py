from __future__ import annotations
import secrets

from fastapi import APIRouter

from ...domain.errors import NotFound
from ...services.oauth import PROVIDERS

router = APIRouter(tags=["oauth"])


@router.get("/{provider}")
async def oauth_start(provider: str):
    p = PROVIDERS.get(provider)
    if p is None:
        raise NotFound("Unknown sign-in provider")
    # raises NotImplementedFeature (501) until a provider is wired up
    url = p.authorization_url(state=secrets.token_urlsafe(16))
    return {"success": True, "url": url}
