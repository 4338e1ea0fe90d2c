from __future__ import annotations

import asyncio
import json
from typing import Callable

import httpx
import pytest
from sqlalchemy import delete

from taskmate.client.api import ApiError, TaskmateApi
from taskmate.client.session import SessionContext
from taskmate.client.sync import TaskSync
from taskmate.db import SessionLocal
from taskmate.main import app
from taskmate.models import User
from taskmate.schemas import UserOut


class FlakyTransport(httpx.AsyncBaseTransport):
  """ASGI transport that can be told to drop requests on the floor."""

  def __init__(self) -> None:
    self.inner = httpx.ASGITransport(app=app)
    self.down = False
    self.on_request: Callable[[httpx.Request], None] | None = None

  async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
    if self.on_request is not None:
      self.on_request(request)
    if self.down:
      raise httpx.ConnectError("connection refused", request=request)
    return await self.inner.handle_async_request(request)


@pytest.fixture
def transport() -> FlakyTransport:
  return FlakyTransport()


@pytest.fixture
async def api(fresh_db, transport: FlakyTransport, tmp_path):
  session = SessionContext(tmp_path / "session.json")
  async with TaskmateApi("http://localhost", session, transport=transport) as c:
    yield c


@pytest.fixture
async def sync(api: TaskmateApi) -> TaskSync:
  await api.register(name="Ann", email="ann@example.com", password="secret123")
  return TaskSync(api, api.session)


@pytest.mark.anyio
async def test_mutations_invalidate_and_refetch(sync: TaskSync) -> None:
  assert await sync.tasks() == []

  created = await sync.create_task(title="Pay rent", due_date="2030-01-01")
  assert created is not None
  assert [t.id for t in sync.cached()] == [created.id]
  assert [t.message for t in sync.drain_toasts()] == ["Task created successfully"]
  assert not sync.pending

  updated = await sync.update_task(created.id, description="Before the 5th")
  assert updated is not None and updated.description == "Before the 5th"
  assert sync.cached()[0].description == "Before the 5th"

  done = await sync.complete_task(created.id)
  assert done is not None and done.completed
  assert sync.view().completed_count == 1
  assert sync.view().active_count == 0

  assert await sync.delete_task(created.id) is True
  assert sync.cached() == []
  assert [t.message for t in sync.drain_toasts()] == [
    "Task updated successfully",
    "Task marked as complete",
    "Task deleted successfully",
  ]


@pytest.mark.anyio
async def test_failed_fetch_keeps_last_good_collection(sync: TaskSync, transport: FlakyTransport) -> None:
  await sync.create_task(title="Keep me", due_date="2030-01-01")
  sync.drain_toasts()
  before = sync.cached()

  transport.down = True
  sync.invalidate()
  assert await sync.tasks() == before
  toasts = sync.drain_toasts()
  assert [(t.level, t.message) for t in toasts] == [("error", "Failed to load tasks")]

  assert await sync.create_task(title="Lost", due_date="2030-01-01") is None
  assert [t.message for t in sync.drain_toasts()] == ["Failed to create task"]
  assert sync.cached() == before
  assert not sync.pending


@pytest.mark.anyio
async def test_failed_mutation_reports_and_returns_none(sync: TaskSync) -> None:
  assert await sync.delete_task("no-such-task") is False
  assert await sync.complete_task("no-such-task") is None
  assert [t.message for t in sync.drain_toasts()] == ["Failed to delete task", "Failed to complete task"]


@pytest.mark.anyio
async def test_feed_is_rebuilt_on_every_fetch(sync: TaskSync) -> None:
  late = await sync.create_task(title="Late", due_date="2001-01-01")
  await sync.create_task(title="Fine", due_date="2099-01-01")
  assert late is not None
  assert [i.notification.taskId for i in sync.feed.items] == [late.id]
  assert sync.feed.unread_count == 1

  sync.feed.mark_all_read()
  await sync.tasks(force=True)
  # A refetch starts over with unread items.
  assert sync.feed.unread_count == 1

  await sync.complete_task(late.id)
  assert sync.feed.items == []


@pytest.mark.anyio
async def test_double_complete_is_harmless(sync: TaskSync) -> None:
  t = await sync.create_task(title="Click twice", due_date="2030-01-01")
  assert t is not None
  first = await sync.complete_task(t.id)
  second = await sync.complete_task(t.id)
  assert first is not None and second is not None
  assert first.completed and second.completed
  assert second.updatedAt > first.updatedAt


@pytest.mark.anyio
async def test_concurrent_double_complete_is_harmless(sync: TaskSync) -> None:
  t = await sync.create_task(title="Double click", due_date="2030-01-01")
  assert t is not None
  sync.drain_toasts()

  first, second = await asyncio.gather(sync.complete_task(t.id), sync.complete_task(t.id))
  assert first is not None and second is not None
  assert first.completed and second.completed
  assert [x.level for x in sync.drain_toasts()] == ["success", "success"]
  assert not sync.pending
  assert [x.completed for x in sync.cached()] == [True]


@pytest.mark.anyio
async def test_client_side_invalid_input_becomes_error_toast(sync: TaskSync) -> None:
  t = await sync.create_task(title="Valid", due_date="2030-01-01")
  assert t is not None
  sync.drain_toasts()
  before = sync.cached()

  assert await sync.create_task(title="bad", due_date="next tuesday") is None
  assert await sync.update_task(t.id, due_date="not a date") is None
  assert await sync.update_task(t.id, colour="red") is None
  assert await sync.update_task(t.id, files=[{"name": ""}]) is None

  assert [(x.level, x.message) for x in sync.drain_toasts()] == [
    ("error", "Failed to create task"),
    ("error", "Failed to update task"),
    ("error", "Failed to update task"),
    ("error", "Failed to update task"),
  ]
  assert sync.cached() == before
  assert not sync.pending


@pytest.mark.anyio
async def test_invalid_due_date_is_a_400_api_error(api: TaskmateApi) -> None:
  await api.register(name="Ann", email="ann@example.com", password="secret123")
  with pytest.raises(ApiError) as exc:
    await api.create_task(title="bad", due_date="next tuesday")
  assert exc.value.status_code == 400
  assert exc.value.detail.startswith("dueDate")


@pytest.mark.anyio
async def test_pending_spans_mutation_and_refetch(sync: TaskSync, transport: FlakyTransport) -> None:
  seen: list[tuple[str, bool]] = []
  transport.on_request = lambda req: seen.append((req.method, sync.pending))

  await sync.create_task(title="Watch me", due_date="2030-01-01")
  assert seen == [("POST", True), ("GET", True)]
  assert not sync.pending

  seen.clear()
  await sync.tasks(force=True)
  assert seen == [("GET", True)]
  assert not sync.pending


@pytest.mark.anyio
async def test_rejected_token_clears_session_and_cache(sync: TaskSync) -> None:
  await sync.create_task(title="Private", due_date="2030-01-01")
  assert sync.cached()

  sync.session.token = "garbage"
  await sync.refresh()
  assert not sync.session.is_authenticated
  assert sync.cached() == []
  assert sync.feed.items == []
  assert sync.session.path is not None and not sync.session.path.exists()


@pytest.mark.anyio
async def test_me_for_deleted_user_ends_session(api: TaskmateApi) -> None:
  user = await api.register(name="Ann", email="ann@example.com", password="secret123")
  assert (await api.me()).id == user.id

  async with SessionLocal() as db:
    await db.execute(delete(User).where(User.id == user.id))
    await db.commit()

  with pytest.raises(ApiError) as exc:
    await api.me()
  assert exc.value.status_code == 404
  assert not api.session.is_authenticated


@pytest.mark.anyio
async def test_logout_tears_down_cached_state(sync: TaskSync) -> None:
  await sync.create_task(title="Before logout", due_date="2001-01-01")
  assert sync.cached() and sync.feed.items

  sync.logout()
  assert not sync.session.is_authenticated
  assert sync.cached() == []
  assert sync.feed.items == []
  assert await sync.tasks() == []

  with pytest.raises(ApiError) as exc:
    await sync.api.list_tasks()
  assert exc.value.status_code == 401


@pytest.mark.anyio
async def test_second_user_never_sees_first_users_cache(api: TaskmateApi) -> None:
  sync = TaskSync(api, api.session)
  await api.register(name="Ann", email="ann@example.com", password="secret123")
  await sync.create_task(title="Ann only", due_date="2030-01-01")

  sync.logout()
  await api.register(name="Bob", email="bob@example.com", password="secret123")
  assert await sync.tasks() == []


def test_session_persists_and_reloads(tmp_path) -> None:
  path = tmp_path / "nested" / "session.json"
  user = UserOut(id="u1", name="Ann", email="ann@example.com")
  ctx = SessionContext(path)
  ctx.sign_in("tok-1", user)

  loaded = SessionContext.load(path)
  assert loaded.token == "tok-1"
  assert loaded.user == user
  assert loaded.owner_key == "u1"

  calls: list[str] = []
  loaded.on_clear(lambda: calls.append("cleared"))
  loaded.clear()
  loaded.clear()
  assert calls == ["cleared"]
  assert not path.exists()


def test_unreadable_session_file_is_ignored(tmp_path) -> None:
  path = tmp_path / "session.json"
  path.write_text("{not json", encoding="utf-8")
  assert not SessionContext.load(path).is_authenticated

  path.write_text(json.dumps({"token": "", "user": None}), encoding="utf-8")
  assert SessionContext.load(path).owner_key is None
