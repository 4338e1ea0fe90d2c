from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Literal

from taskmate.schemas import TaskOut

SortKey = Literal["dueDate", "createdAt"]
SortOrder = Literal["asc", "desc"]


@dataclass
class DashboardView:
  active: list[TaskOut] = field(default_factory=list)
  completed: list[TaskOut] = field(default_factory=list)

  @property
  def active_count(self) -> int:
    return len(self.active)

  @property
  def completed_count(self) -> int:
    return len(self.completed)


def search_tasks(tasks: Iterable[TaskOut], text: str) -> list[TaskOut]:
  needle = (text or "").lower()
  if not needle:
    return list(tasks)
  return [t for t in tasks if needle in t.title.lower() or needle in (t.description or "").lower()]


def sort_tasks(tasks: Iterable[TaskOut], by: SortKey = "dueDate", order: SortOrder = "asc") -> list[TaskOut]:
  if by == "dueDate":
    key = lambda t: t.dueDate
  elif by == "createdAt":
    key = lambda t: t.createdAt
  else:
    raise ValueError(f"unknown sort key: {by}")
  # sorted() is stable, so ties keep the server's newest-first order.
  return sorted(tasks, key=key, reverse=(order == "desc"))


def partition(tasks: Iterable[TaskOut]) -> tuple[list[TaskOut], list[TaskOut]]:
  active: list[TaskOut] = []
  done: list[TaskOut] = []
  for t in tasks:
    (done if t.completed else active).append(t)
  return active, done


def dashboard_view(
  tasks: Iterable[TaskOut],
  *,
  search: str = "",
  sort_by: SortKey = "dueDate",
  order: SortOrder = "asc",
) -> DashboardView:
  """Search, then sort, then split into the Active and Completed tabs."""
  ordered = sort_tasks(search_tasks(tasks, search), by=sort_by, order=order)
  active, done = partition(ordered)
  return DashboardView(active=active, completed=done)


def tasks_for_day(tasks: Iterable[TaskOut], day: date) -> list[TaskOut]:
  return [t for t in tasks if t.dueDate.date() == day]


def group_by_due_day(tasks: Iterable[TaskOut]) -> dict[date, list[TaskOut]]:
  out: dict[date, list[TaskOut]] = defaultdict(list)
  for t in tasks:
    out[t.dueDate.date()].append(t)
  return dict(out)


def format_file_size(size: int) -> str:
  if size < 1024:
    return f"{size} B"
  if size < 1024 * 1024:
    return f"{size / 1024:.1f} KB"
  return f"{size / (1024 * 1024):.1f} MB"


def format_date(value: datetime | date) -> str:
  return f"{value:%b} {value.day}, {value.year}"


def format_datetime(value: datetime) -> str:
  hour = value.hour % 12 or 12
  return f"{format_date(value)} {hour}:{value:%M} {'AM' if value.hour < 12 else 'PM'}"
