from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.deps import get_completion_notifier, get_db, get_owner_id
from taskmate.notifications.service import CompletionNotifier
from taskmate.schemas import MessageOut, TaskCreateIn, TaskOut, TaskUpdateIn
from taskmate.tasks import service as task_service
from taskmate.tasks.service import TaskPatch

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskOut])
async def list_tasks(owner_id: str = Depends(get_owner_id), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  return await task_service.list_tasks(db, owner_id)


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, owner_id: str = Depends(get_owner_id), db: AsyncSession = Depends(get_db)) -> TaskOut:
  return await task_service.get_task(db, owner_id, task_id)


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreateIn, owner_id: str = Depends(get_owner_id), db: AsyncSession = Depends(get_db)) -> TaskOut:
  return await task_service.create_task(db, owner_id, payload)


@router.put("/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  owner_id: str = Depends(get_owner_id),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  patch = TaskPatch.from_update(payload)
  return await task_service.update_task(db, owner_id, task_id, patch)


@router.delete("/{task_id}", response_model=MessageOut)
async def delete_task(task_id: str, owner_id: str = Depends(get_owner_id), db: AsyncSession = Depends(get_db)) -> MessageOut:
  await task_service.delete_task(db, owner_id, task_id)
  return MessageOut(message="Task deleted")


@router.patch("/{task_id}/complete", response_model=TaskOut)
async def complete_task(
  task_id: str,
  owner_id: str = Depends(get_owner_id),
  db: AsyncSession = Depends(get_db),
  notifier: CompletionNotifier | None = Depends(get_completion_notifier),
) -> TaskOut:
  return await task_service.complete_task(db, owner_id, task_id, notifier=notifier)
