from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from taskmate.config import settings
from taskmate.errors import Unauthenticated

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

_dummy_hash: str | None = None


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
  """
  Check a password against a stored hash.

  A missing hash (unknown user, Google-only account) is still checked
  against a fixed dummy hash so callers cannot tell the cases apart by timing.
  """
  global _dummy_hash
  if not password_hash:
    if _dummy_hash is None:
      _dummy_hash = pwd_context.hash("taskmate-dummy-password")
    pwd_context.verify(password or "", _dummy_hash)
    return False
  try:
    return pwd_context.verify(password or "", password_hash)
  except ValueError:
    return False


def token_expires_at(now: datetime | None = None) -> datetime:
  base = now or datetime.now(timezone.utc)
  return base + timedelta(days=settings.token_ttl_days)


def create_access_token(user_id: str, *, now: datetime | None = None) -> str:
  issued = now or datetime.now(timezone.utc)
  claims = {"sub": user_id, "iat": issued, "exp": token_expires_at(issued)}
  return jwt.encode(claims, settings.app_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str | None) -> str:
  """Return the user id bound to a session token."""
  raw = (token or "").strip()
  if not raw:
    raise Unauthenticated("Authentication required")
  try:
    claims = jwt.decode(raw, settings.app_secret, algorithms=[settings.jwt_algorithm], options={"require": ["sub", "exp"]})
  except jwt.ExpiredSignatureError as exc:
    raise Unauthenticated("Session expired") from exc
  except jwt.InvalidTokenError as exc:
    raise Unauthenticated("Invalid authentication token") from exc
  sub = claims.get("sub")
  if not isinstance(sub, str) or not sub:
    raise Unauthenticated("Invalid authentication token")
  return sub


def bearer_token(authorization: str | None) -> str | None:
  if not authorization:
    return None
  scheme, _, value = authorization.partition(" ")
  if scheme.lower() != "bearer":
    return None
  return value.strip() or None
