from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskmate.config import settings
from taskmate.db import init_models
from taskmate.errors import TaskmateError
from taskmate.logging_setup import setup_logging
from taskmate.routers.auth import router as auth_router
from taskmate.routers.files import router as files_router
from taskmate.routers.notifications import router as notifications_router
from taskmate.routers.tasks import router as tasks_router

logger = logging.getLogger(__name__)

app = FastAPI(
  title="Taskmate API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(TaskmateError)
async def _taskmate_error_handler(_, exc: TaskmateError) -> JSONResponse:
  headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
  return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_, exc: RequestValidationError) -> JSONResponse:
  errors = exc.errors()
  message = "Invalid input"
  if errors:
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
  return JSONResponse(status_code=400, content={"detail": message})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.exception("unhandled error on %s %s", request.method, request.url.path)
  return JSONResponse(status_code=500, content={"detail": "Server error"})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(files_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("startup")
async def _startup() -> None:
  setup_logging(settings.log_level)
  if settings.is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  if settings.create_schema_on_start:
    await init_models()
  logger.info("taskmate api started version=%s", settings.app_version)
