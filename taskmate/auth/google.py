from __future__ import annotations

import asyncio
from dataclasses import dataclass

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from taskmate.config import settings


@dataclass(frozen=True)
class GoogleIdentity:
  sub: str
  email: str
  name: str
  picture: str | None = None


def _verify_sync(token: str, audience: str) -> dict:
  return google_id_token.verify_oauth2_token(token, google_requests.Request(), audience=audience)


async def verify_google_id_token(token: str) -> GoogleIdentity:
  """Check a Google ID token's signature, issuer and audience; raises ValueError when it fails."""
  audience = (settings.google_client_id or "").strip()
  if not audience:
    raise ValueError("GOOGLE_CLIENT_ID is not configured")
  claims = await asyncio.to_thread(_verify_sync, token, audience)
  email = str(claims.get("email") or "").strip().lower()
  sub = str(claims.get("sub") or "").strip()
  if not email or not sub:
    raise ValueError("Google token has no email/sub")
  if claims.get("email_verified") is False:
    raise ValueError("Google email is not verified")
  return GoogleIdentity(
    sub=sub,
    email=email,
    name=str(claims.get("name") or email.split("@", 1)[0]),
    picture=claims.get("picture"),
  )
