from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

_TMP = tempfile.mkdtemp(prefix="taskmate-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP}/taskmate_test.db")
os.environ.setdefault("APP_SECRET", "test-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", f"{_TMP}/uploads")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

import pytest
from httpx import ASGITransport, AsyncClient

from taskmate.config import settings
from taskmate.db import SessionLocal, drop_models, engine, init_models
from taskmate.main import app
from taskmate.rate_limit import limiter


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def fresh_db() -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskmate_test)."
    )
  limiter.reset()
  await drop_models()
  await init_models()
  yield
  app.dependency_overrides.clear()
  await engine.dispose()


@pytest.fixture
async def client(fresh_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def db(fresh_db):
  async with SessionLocal() as session:
    yield session


def auth_headers(token: str) -> dict[str, str]:
  return {"Authorization": f"Bearer {token}"}


async def register(
  client: AsyncClient,
  email: str = "ann@example.com",
  password: str = "secret123",
  name: str = "Ann",
) -> dict:
  res = await client.post("/auth/register", json={"name": name, "email": email, "password": password})
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["token"]
  return body


async def create_task(client: AsyncClient, token: str, **body) -> dict:
  payload = {"title": "Pay rent", "dueDate": "2030-01-01"}
  payload.update(body)
  res = await client.post("/tasks", json=payload, headers=auth_headers(token))
  assert res.status_code == 201, res.text
  return res.json()
