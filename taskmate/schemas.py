from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field
from pydantic import field_validator


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


class UserOut(BaseModel):
  id: str
  name: str
  email: str
  avatar: str | None = None


class AuthOut(BaseModel):
  token: str
  user: UserOut


class MeOut(BaseModel):
  user: UserOut


class RegisterIn(BaseModel):
  name: str = Field(min_length=1, max_length=120)
  email: str = Field(min_length=3, max_length=320)
  password: str = Field(min_length=6, max_length=200)


class LoginIn(BaseModel):
  email: str
  password: str


class GoogleLoginIn(BaseModel):
  token: str = Field(min_length=1)


class AttachmentIn(BaseModel):
  id: str | None = None
  name: str = Field(min_length=1)
  url: str = Field(min_length=1)
  type: str | None = None
  size: int | None = Field(default=None, ge=0)


class AttachmentOut(BaseModel):
  id: str
  name: str
  url: str
  type: str | None = None
  size: int | None = None


class TaskCreateIn(BaseModel):
  # Presence checks happen in the task service so they share one error path.
  title: str | None = None
  description: str | None = ""
  dueDate: datetime | None = None
  files: list[AttachmentIn] = []

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  title: str | None = None
  description: str | None = None
  dueDate: datetime | None = None
  completed: bool | None = None
  files: list[AttachmentIn] | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_to_utc(cls, v: object) -> object:
    return parse_dt_utc(v)


class TaskOut(BaseModel):
  id: str
  title: str
  description: str
  dueDate: datetime
  completed: bool
  files: list[AttachmentOut] = []
  createdAt: datetime
  updatedAt: datetime

  @field_validator("dueDate", "createdAt", "updatedAt", mode="before")
  @classmethod
  def _to_utc(cls, v: object) -> object:
    return parse_dt_utc(v)


class MessageOut(BaseModel):
  message: str


class NotificationOut(BaseModel):
  id: str
  taskId: str
  message: str
  severity: Literal["info", "warning", "success"]
  timestamp: datetime
