from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from taskmate.schemas import NotificationOut, TaskOut


def overdue_id(task_id: str) -> str:
  return f"overdue-{task_id}"


def derive(tasks: Iterable[TaskOut], now: datetime | None = None) -> list[NotificationOut]:
  """
  Overdue alerts for a task collection.

  One warning per incomplete task whose due date is strictly before `now`.
  Nothing is stored; callers replace their previous list with the result.
  """
  ts = now or datetime.now(timezone.utc)
  if ts.tzinfo is None:
    ts = ts.replace(tzinfo=timezone.utc)
  out: list[NotificationOut] = []
  for t in tasks:
    if t.completed or t.dueDate is None:
      continue
    if t.dueDate < ts:
      out.append(
        NotificationOut(
          id=overdue_id(t.id),
          taskId=t.id,
          message=f'Task "{t.title}" is overdue!',
          severity="warning",
          timestamp=ts,
        )
      )
  return out
