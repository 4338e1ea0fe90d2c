from __future__ import annotations

import logging
from typing import Awaitable, Callable
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.audit import write_audit
from taskmate.auth.google import GoogleIdentity, verify_google_id_token
from taskmate.config import settings
from taskmate.errors import Conflict, Internal, InvalidCredentials, InvalidInput, NotFound
from taskmate.models import User, new_id
from taskmate.schemas import UserOut
from taskmate.security import create_access_token, decode_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

GoogleVerifier = Callable[[str], Awaitable[GoogleIdentity]]


def normalize_email(email: str | None) -> str:
  return (email or "").strip().lower()


def default_avatar(email: str) -> str:
  return f"https://api.dicebear.com/7.x/avataaars/svg?seed={quote(email)}"


def user_out(u: User) -> UserOut:
  return UserOut(id=u.id, name=u.name, email=u.email, avatar=u.avatar_url)


async def _user_by_email(db: AsyncSession, email: str) -> User | None:
  res = await db.execute(select(User).where(User.email == email))
  return res.scalar_one_or_none()


async def register(db: AsyncSession, *, name: str, email: str, password: str) -> tuple[User, str]:
  normalized = normalize_email(email)
  if "@" not in normalized:
    raise InvalidInput("Invalid email")
  if await _user_by_email(db, normalized):
    raise Conflict("User already exists")

  u = User(
    id=new_id(),
    name=name.strip(),
    email=normalized,
    password_hash=hash_password(password),
    provider="local",
    avatar_url=default_avatar(normalized),
  )
  db.add(u)
  await write_audit(db, event_type="auth.registered", entity_type="User", entity_id=u.id, actor_id=u.id, payload={"provider": "local"})
  try:
    await db.commit()
  except IntegrityError as exc:
    # Lost a race with a concurrent registration for the same email.
    await db.rollback()
    raise Conflict("User already exists") from exc
  logger.info("user registered id=%s", u.id)
  return u, create_access_token(u.id)


async def login(db: AsyncSession, *, email: str, password: str) -> tuple[User, str]:
  normalized = normalize_email(email)
  u = await _user_by_email(db, normalized)
  # verify_password burns a hash check even without a stored hash.
  ok = verify_password(password, u.password_hash if u else None)
  if not u or not ok:
    await write_audit(db, event_type="auth.login.failed", entity_type="Auth", entity_id=None, actor_id=None, payload={"email": normalized})
    await db.commit()
    logger.warning("login failed email=%s", normalized)
    raise InvalidCredentials("Invalid credentials")

  await write_audit(db, event_type="auth.login.success", entity_type="User", entity_id=u.id, actor_id=u.id, payload={"provider": "local"})
  await db.commit()
  return u, create_access_token(u.id)


async def google_login(
  db: AsyncSession,
  *,
  token: str,
  verifier: GoogleVerifier = verify_google_id_token,
) -> tuple[User, str]:
  try:
    identity = await verifier(token)
  except Exception as exc:
    logger.warning("google token rejected: %s", exc)
    raise Internal("Google sign-in failed") from exc

  u = await _user_by_email(db, identity.email)
  if u is None:
    u = User(
      id=new_id(),
      name=identity.name,
      email=identity.email,
      password_hash=None,
      provider="google",
      provider_id=identity.sub,
      avatar_url=identity.picture or default_avatar(identity.email),
    )
    db.add(u)
    event_type = "auth.registered"
  elif u.provider != "google":
    if not settings.google_account_linking:
      raise Conflict("An account with this email already exists; sign in with your password")
    u.provider = "google"
    u.provider_id = identity.sub
    event_type = "auth.google.linked"
    logger.info("google identity linked to local user id=%s", u.id)
  else:
    event_type = "auth.login.success"

  await write_audit(db, event_type=event_type, entity_type="User", entity_id=u.id, actor_id=u.id, payload={"provider": "google"})
  await db.commit()
  return u, create_access_token(u.id)


async def resolve_user(db: AsyncSession, token: str | None) -> User:
  """Map a bearer token to its user; Unauthenticated for bad tokens, NotFound for deleted users."""
  user_id = decode_access_token(token)
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFound("User not found")
  return u
