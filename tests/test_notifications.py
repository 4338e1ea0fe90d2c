from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from taskmate.client.feed import NotificationFeed
from taskmate.notifications.overdue import derive
from taskmate.schemas import TaskOut

from conftest import auth_headers, create_task, register

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _task(task_id: str, due: str, *, completed: bool = False, title: str = "Pay rent") -> TaskOut:
  return TaskOut(
    id=task_id,
    title=title,
    description="",
    dueDate=due,
    completed=completed,
    createdAt="2023-01-01T00:00:00Z",
    updatedAt="2023-01-01T00:00:00Z",
  )


def test_incomplete_past_due_task_is_overdue() -> None:
  out = derive([_task("t1", "2020-01-01")], now=NOW)
  assert len(out) == 1
  n = out[0]
  assert n.id == "overdue-t1"
  assert n.taskId == "t1"
  assert n.severity == "warning"
  assert n.message == 'Task "Pay rent" is overdue!'
  assert n.timestamp == NOW


def test_completed_or_future_tasks_are_not_overdue() -> None:
  tasks = [
    _task("done", "2020-01-01", completed=True),
    _task("future", "2030-01-01"),
    _task("exact", "2024-01-01T00:00:00Z"),
  ]
  assert derive(tasks, now=NOW) == []


def test_naive_now_is_treated_as_utc() -> None:
  out = derive([_task("t1", "2023-12-31T23:59:59Z")], now=datetime(2024, 1, 1))
  assert [n.taskId for n in out] == ["t1"]


def test_feed_read_state_resets_on_replace() -> None:
  feed = NotificationFeed()
  feed.replace(derive([_task("a", "2020-01-01"), _task("b", "2020-01-02")], now=NOW))
  assert feed.unread_count == 2

  assert feed.mark_read("overdue-a") is True
  assert feed.mark_read("overdue-missing") is False
  assert feed.unread_count == 1

  feed.replace(derive([_task("a", "2020-01-01")], now=NOW))
  assert feed.unread_count == 1

  feed.mark_all_read()
  assert feed.unread_count == 0
  feed.clear()
  assert feed.items == []


@pytest.mark.anyio
async def test_notifications_endpoint_lists_overdue_tasks(client: AsyncClient) -> None:
  token = (await register(client))["token"]
  h = auth_headers(token)
  late = await create_task(client, token, title="Late", dueDate="2001-01-01")
  await create_task(client, token, title="Later", dueDate="2099-01-01")

  res = await client.get("/notifications", headers=h)
  assert res.status_code == 200, res.text
  assert [n["taskId"] for n in res.json()] == [late["id"]]

  await client.patch(f"/tasks/{late['id']}/complete", headers=h)
  assert (await client.get("/notifications", headers=h)).json() == []


@pytest.mark.anyio
async def test_notifications_require_auth(client: AsyncClient) -> None:
  assert (await client.get("/notifications")).status_code == 401
