from __future__ import annotations

from typing import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.auth.google import verify_google_id_token
from taskmate.auth.service import GoogleVerifier, resolve_user
from taskmate.config import settings
from taskmate.db import SessionLocal
from taskmate.models import User
from taskmate.notifications.service import CompletionNotifier, completion_notifier
from taskmate.security import bearer_token
from taskmate.storage import BlobStore, LocalBlobStore


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
  token = bearer_token(request.headers.get("authorization"))
  return await resolve_user(db, token)


async def get_owner_id(user: User = Depends(get_current_user)) -> str:
  return user.id


def client_ip(request: Request) -> str:
  return request.client.host if request.client else "unknown"


def get_google_verifier() -> GoogleVerifier:
  return verify_google_id_token


def get_completion_notifier() -> CompletionNotifier | None:
  return completion_notifier()


def get_blob_store() -> BlobStore:
  return LocalBlobStore(settings.upload_dir)
