from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.deps import get_db, get_owner_id
from taskmate.notifications.overdue import derive
from taskmate.schemas import NotificationOut
from taskmate.tasks import service as task_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
async def list_notifications(owner_id: str = Depends(get_owner_id), db: AsyncSession = Depends(get_db)) -> list[NotificationOut]:
  tasks = await task_service.list_tasks(db, owner_id)
  return derive(tasks)
