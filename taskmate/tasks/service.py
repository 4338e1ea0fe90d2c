from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.audit import write_audit
from taskmate.errors import InvalidInput, NotFound
from taskmate.models import Attachment, Task, User, new_id, utcnow
from taskmate.schemas import AttachmentIn, AttachmentOut, TaskCreateIn, TaskOut, TaskUpdateIn

if TYPE_CHECKING:
  from taskmate.notifications.service import CompletionNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskPatch:
  """
  Explicit partial update for a task.

  Each slot is either None (leave the stored value alone) or the new value.
  Identity and ownership fields have no slot, so a patch can never move a
  task to another owner or rename its id.
  """

  title: str | None = None
  description: str | None = None
  due_date: datetime | None = None
  completed: bool | None = None
  files: tuple[AttachmentIn, ...] | None = None

  @classmethod
  def from_update(cls, payload: TaskUpdateIn) -> TaskPatch:
    fields_set = payload.model_fields_set
    title = None
    if "title" in fields_set:
      title = _clean_title(payload.title)
    due_date = None
    if "dueDate" in fields_set:
      if payload.dueDate is None:
        raise InvalidInput("Due date is required")
      due_date = payload.dueDate
    description = None
    if "description" in fields_set:
      description = payload.description or ""
    files = None
    if "files" in fields_set:
      files = tuple(payload.files or ())
    completed = payload.completed if "completed" in fields_set else None
    return cls(title=title, description=description, due_date=due_date, completed=completed, files=files)

  def is_empty(self) -> bool:
    return all(v is None for v in (self.title, self.description, self.due_date, self.completed, self.files))


def apply_patch(task: Task, patch: TaskPatch) -> list[str]:
  """Merge the scalar slots of a patch into a task; returns the changed field names."""
  changed: list[str] = []
  mapping = [
    ("title", "title"),
    ("description", "description"),
    ("due_date", "dueDate"),
    ("completed", "completed"),
  ]
  for attr, field_name in mapping:
    value = getattr(patch, attr)
    if value is None:
      continue
    setattr(task, attr, value)
    changed.append(field_name)
  return changed


def touch(task: Task, now: datetime | None = None) -> None:
  ts = now or utcnow()
  # Two writes inside one clock tick must still move updated_at forward.
  if task.updated_at is not None and ts <= task.updated_at:
    ts = task.updated_at + timedelta(microseconds=1)
  task.updated_at = ts


def _clean_title(title: str | None) -> str:
  value = (title or "").strip()
  if not value:
    raise InvalidInput("Title is required")
  return value


def _attachment_out(a: Attachment) -> AttachmentOut:
  return AttachmentOut(id=a.id, name=a.name, url=a.url, type=a.mime, size=a.size_bytes)


def _task_out(t: Task, files: Sequence[Attachment]) -> TaskOut:
  return TaskOut(
    id=t.id,
    title=t.title,
    description=t.description or "",
    dueDate=t.due_date,
    completed=bool(t.completed),
    files=[_attachment_out(a) for a in files],
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


async def _files_by_task(db: AsyncSession, task_ids: list[str]) -> dict[str, list[Attachment]]:
  out: dict[str, list[Attachment]] = {tid: [] for tid in task_ids}
  if not task_ids:
    return out
  res = await db.execute(
    select(Attachment).where(Attachment.task_id.in_(task_ids)).order_by(Attachment.task_id, Attachment.position.asc())
  )
  for a in res.scalars().all():
    out[a.task_id].append(a)
  return out


async def _owned_task(db: AsyncSession, owner_id: str, task_id: str) -> Task:
  # Someone else's task looks exactly like a missing one.
  res = await db.execute(select(Task).where(Task.id == task_id, Task.owner_id == owner_id))
  t = res.scalar_one_or_none()
  if not t:
    raise NotFound("Task not found")
  return t


async def _replace_files(db: AsyncSession, task_id: str, files: Sequence[AttachmentIn]) -> list[Attachment]:
  res = await db.execute(select(Attachment).where(Attachment.task_id == task_id))
  existing = {a.id: a for a in res.scalars().all()}
  out: list[Attachment] = []
  for position, f in enumerate(files):
    a = existing.pop(f.id, None) if f.id else None
    if a is None:
      a = Attachment(id=new_id(), task_id=task_id)
      db.add(a)
    a.position = position
    a.name = f.name
    a.url = f.url
    a.mime = f.type
    a.size_bytes = f.size
    out.append(a)
  for dropped in existing.values():
    await db.delete(dropped)
  return out


async def task_snapshot(db: AsyncSession, t: Task) -> TaskOut:
  files = await _files_by_task(db, [t.id])
  return _task_out(t, files[t.id])


async def list_tasks(db: AsyncSession, owner_id: str) -> list[TaskOut]:
  res = await db.execute(select(Task).where(Task.owner_id == owner_id).order_by(Task.created_at.desc(), Task.id.desc()))
  tasks = res.scalars().all()
  files = await _files_by_task(db, [t.id for t in tasks])
  return [_task_out(t, files[t.id]) for t in tasks]


async def get_task(db: AsyncSession, owner_id: str, task_id: str) -> TaskOut:
  t = await _owned_task(db, owner_id, task_id)
  return await task_snapshot(db, t)


async def create_task(db: AsyncSession, owner_id: str, payload: TaskCreateIn) -> TaskOut:
  title = _clean_title(payload.title)
  if payload.dueDate is None:
    raise InvalidInput("Due date is required")

  now = utcnow()
  t = Task(
    id=new_id(),
    owner_id=owner_id,
    title=title,
    description=payload.description or "",
    due_date=payload.dueDate,
    completed=False,
    created_at=now,
    updated_at=now,
  )
  db.add(t)
  await db.flush()
  files = await _replace_files(db, t.id, payload.files or [])
  await write_audit(
    db,
    event_type="task.created",
    entity_type="Task",
    entity_id=t.id,
    actor_id=owner_id,
    payload={"title": t.title, "dueDate": t.due_date, "files": len(files)},
  )
  await db.commit()
  logger.info("task created id=%s owner=%s", t.id, owner_id)
  return _task_out(t, files)


async def update_task(db: AsyncSession, owner_id: str, task_id: str, patch: TaskPatch) -> TaskOut:
  t = await _owned_task(db, owner_id, task_id)
  changed = apply_patch(t, patch)
  if patch.files is not None:
    await _replace_files(db, t.id, patch.files)
    changed.append("files")
  touch(t)
  await write_audit(
    db,
    event_type="task.updated",
    entity_type="Task",
    entity_id=t.id,
    actor_id=owner_id,
    payload={"changed": changed},
  )
  await db.commit()
  logger.info("task updated id=%s fields=%s", t.id, ",".join(changed) or "-")
  return await task_snapshot(db, t)


async def delete_task(db: AsyncSession, owner_id: str, task_id: str) -> None:
  t = await _owned_task(db, owner_id, task_id)
  await db.execute(delete(Attachment).where(Attachment.task_id == t.id))
  await db.execute(delete(Task).where(Task.id == t.id))
  await write_audit(
    db,
    event_type="task.deleted",
    entity_type="Task",
    entity_id=task_id,
    actor_id=owner_id,
    payload={"title": t.title},
  )
  await db.commit()
  logger.info("task deleted id=%s owner=%s", task_id, owner_id)


async def complete_task(
  db: AsyncSession,
  owner_id: str,
  task_id: str,
  *,
  notifier: CompletionNotifier | None = None,
) -> TaskOut:
  t = await _owned_task(db, owner_id, task_id)
  was_completed = bool(t.completed)
  t.completed = True
  touch(t)
  await write_audit(
    db,
    event_type="task.completed",
    entity_type="Task",
    entity_id=t.id,
    actor_id=owner_id,
    payload={"alreadyCompleted": was_completed},
  )
  await db.commit()
  out = await task_snapshot(db, t)

  if notifier is not None and not was_completed:
    ures = await db.execute(select(User).where(User.id == owner_id))
    owner = ures.scalar_one_or_none()
    if owner is not None:
      await notifier.task_completed(to_addr=owner.email, task=out)
  return out
