from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.auth import service as auth_service
from taskmate.auth.service import GoogleVerifier
from taskmate.config import settings
from taskmate.deps import client_ip, get_current_user, get_db, get_google_verifier
from taskmate.models import User
from taskmate.rate_limit import limiter
from taskmate.schemas import AuthOut, GoogleLoginIn, LoginIn, MeOut, RegisterIn

router = APIRouter(prefix="/auth", tags=["auth"])


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int = 60) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests",
    headers={"Retry-After": str(retry_after)},
  )


def _guard(request: Request, action: str, email: str | None = None) -> None:
  _rate_limit_or_429(key=f"auth:{action}:ip:{client_ip(request)}", limit=int(settings.rate_limit_auth_ip_per_minute))
  email_key = auth_service.normalize_email(email)
  if email_key:
    _rate_limit_or_429(key=f"auth:{action}:email:{email_key}", limit=int(settings.rate_limit_auth_email_per_minute))


@router.post("/register", response_model=AuthOut)
async def register(payload: RegisterIn, request: Request, db: AsyncSession = Depends(get_db)) -> AuthOut:
  _guard(request, "register", payload.email)
  u, token = await auth_service.register(db, name=payload.name, email=payload.email, password=payload.password)
  return AuthOut(token=token, user=auth_service.user_out(u))


@router.post("/login", response_model=AuthOut)
async def login(payload: LoginIn, request: Request, db: AsyncSession = Depends(get_db)) -> AuthOut:
  _guard(request, "login", payload.email)
  u, token = await auth_service.login(db, email=payload.email, password=payload.password)
  return AuthOut(token=token, user=auth_service.user_out(u))


@router.post("/google", response_model=AuthOut)
async def google(
  payload: GoogleLoginIn,
  request: Request,
  db: AsyncSession = Depends(get_db),
  verifier: GoogleVerifier = Depends(get_google_verifier),
) -> AuthOut:
  _guard(request, "google")
  u, token = await auth_service.google_login(db, token=payload.token, verifier=verifier)
  return AuthOut(token=token, user=auth_service.user_out(u))


@router.get("/me", response_model=MeOut)
async def me(user: User = Depends(get_current_user)) -> MeOut:
  return MeOut(user=auth_service.user_out(user))
