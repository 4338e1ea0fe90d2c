from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from taskmate.client.api import ApiError, TaskmateApi
from taskmate.client.feed import NotificationFeed
from taskmate.client.session import SessionContext
from taskmate.client.views import DashboardView, SortKey, SortOrder, dashboard_view, tasks_for_day
from taskmate.notifications.overdue import derive
from taskmate.schemas import TaskOut

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Toast:
  level: str
  message: str
  at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class _CacheEntry:
  tasks: list[TaskOut] = field(default_factory=list)
  stale: bool = True
  fetched_at: datetime | None = None


class TaskSync:
  """
  Cached task collection for the signed-in user.

  Reads come from the cache until it is invalidated. Every successful
  mutation invalidates and refetches the whole collection; nothing is patched
  locally. A failed request leaves the last good collection in place and
  records an error toast instead of raising.
  """

  def __init__(
    self,
    api: TaskmateApi,
    session: SessionContext,
    *,
    clock: Callable[[], datetime] | None = None,
  ) -> None:
    self.api = api
    self.session = session
    self.clock = clock or (lambda: datetime.now(timezone.utc))
    self.feed = NotificationFeed()
    self.toasts: list[Toast] = []
    self._cache: dict[str, _CacheEntry] = {}
    self._in_flight = 0
    session.on_clear(self._teardown)

  @property
  def pending(self) -> bool:
    return self._in_flight > 0

  def _entry(self) -> _CacheEntry | None:
    key = self.session.owner_key
    if key is None:
      return None
    return self._cache.setdefault(key, _CacheEntry())

  def cached(self) -> list[TaskOut]:
    entry = self._entry()
    return list(entry.tasks) if entry else []

  def invalidate(self) -> None:
    entry = self._entry()
    if entry is not None:
      entry.stale = True

  async def tasks(self, *, force: bool = False) -> list[TaskOut]:
    entry = self._entry()
    if entry is None:
      return []
    if entry.stale or force:
      await self.refresh()
    return self.cached()

  async def refresh(self) -> None:
    entry = self._entry()
    if entry is None:
      return
    self._in_flight += 1
    try:
      fetched = await self.api.list_tasks()
    except ApiError as exc:
      logger.warning("task fetch failed: %s", exc)
      self._toast("error", "Failed to load tasks")
      return
    finally:
      self._in_flight -= 1
    # The session may have ended while the request was in flight.
    if self._entry() is not entry:
      return
    entry.tasks = fetched
    entry.stale = False
    entry.fetched_at = self.clock()
    self.feed.replace(derive(fetched, now=self.clock()))

  async def _mutate(self, call: Awaitable[T], *, success: str, failure: str) -> T | None:
    # Stays pending through the refetch that follows a successful call.
    self._in_flight += 1
    try:
      try:
        result = await call
      except ApiError as exc:
        logger.warning("%s: %s", failure, exc)
        self._toast("error", failure)
        return None
      self.invalidate()
      await self.refresh()
    finally:
      self._in_flight -= 1
    self._toast("success", success)
    return result

  async def create_task(self, *, title: str, due_date: datetime | str, description: str = "", files: Any = ()) -> TaskOut | None:
    return await self._mutate(
      self.api.create_task(title=title, due_date=due_date, description=description, files=files),
      success="Task created successfully",
      failure="Failed to create task",
    )

  async def update_task(self, task_id: str, **fields: Any) -> TaskOut | None:
    return await self._mutate(
      self.api.update_task(task_id, **fields),
      success="Task updated successfully",
      failure="Failed to update task",
    )

  async def delete_task(self, task_id: str) -> bool:
    done = await self._mutate(
      self._delete(task_id),
      success="Task deleted successfully",
      failure="Failed to delete task",
    )
    return bool(done)

  async def _delete(self, task_id: str) -> bool:
    await self.api.delete_task(task_id)
    return True

  async def complete_task(self, task_id: str) -> TaskOut | None:
    return await self._mutate(
      self.api.complete_task(task_id),
      success="Task marked as complete",
      failure="Failed to complete task",
    )

  def view(self, *, search: str = "", sort_by: SortKey = "dueDate", order: SortOrder = "asc") -> DashboardView:
    return dashboard_view(self.cached(), search=search, sort_by=sort_by, order=order)

  def tasks_for_day(self, day: date) -> list[TaskOut]:
    return tasks_for_day(self.cached(), day)

  def drain_toasts(self) -> list[Toast]:
    out, self.toasts = self.toasts, []
    return out

  def logout(self) -> None:
    self.session.clear()
    self._teardown()

  def _toast(self, level: str, message: str) -> None:
    self.toasts.append(Toast(level=level, message=message))

  def _teardown(self) -> None:
    self._cache.clear()
    self.feed.clear()
