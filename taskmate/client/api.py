from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from taskmate.client.session import SessionContext
from taskmate.schemas import AttachmentIn, AttachmentOut, NotificationOut, TaskCreateIn, TaskOut, TaskUpdateIn, UserOut


class ApiError(Exception):
  def __init__(self, status_code: int, detail: str) -> None:
    self.status_code = status_code
    self.detail = detail
    super().__init__(f"{status_code}: {detail}")


def _detail(res: httpx.Response) -> str:
  try:
    data = res.json()
  except ValueError:
    return res.text or res.reason_phrase
  if isinstance(data, dict):
    d = data.get("detail") or data.get("error")
    if d is not None:
      return str(d)
  return res.reason_phrase


def _invalid(exc: ValidationError) -> ApiError:
  # Same "loc: msg" shape the server uses for its 400s.
  first = exc.errors()[0]
  loc = ".".join(str(p) for p in first.get("loc", ()))
  msg = first.get("msg", "Invalid input")
  return ApiError(400, f"{loc}: {msg}" if loc else str(msg))


def _attachments(files: Sequence[AttachmentIn | AttachmentOut | dict[str, Any]]) -> list[AttachmentIn]:
  out: list[AttachmentIn] = []
  for f in files:
    if isinstance(f, AttachmentIn):
      out.append(f)
    elif isinstance(f, AttachmentOut):
      out.append(AttachmentIn(**f.model_dump()))
    else:
      out.append(AttachmentIn.model_validate(f))
  return out


class TaskmateApi:
  """Async HTTP client for the Taskmate API, authenticated from a SessionContext."""

  def __init__(
    self,
    base_url: str,
    session: SessionContext,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = 20,
  ) -> None:
    self.session = session
    self._client = httpx.AsyncClient(
      base_url=base_url.rstrip("/"),
      timeout=timeout,
      transport=transport,
      headers={"Accept": "application/json", "User-Agent": "Taskmate-Client/0.1"},
    )

  async def __aenter__(self) -> TaskmateApi:
    return self

  async def __aexit__(self, *exc: object) -> None:
    await self.aclose()

  async def aclose(self) -> None:
    await self._client.aclose()

  async def _request(self, method: str, path: str, *, auth: bool = True, **kwargs: Any) -> httpx.Response:
    headers = dict(kwargs.pop("headers", None) or {})
    if auth:
      if not self.session.token:
        raise ApiError(401, "Not signed in")
      headers["Authorization"] = f"Bearer {self.session.token}"
    try:
      res = await self._client.request(method, path, headers=headers, **kwargs)
    except httpx.HTTPError as exc:
      raise ApiError(0, f"Network error: {exc}") from exc
    if auth and res.status_code == 401:
      # The server no longer accepts this token.
      self.session.clear()
    if res.is_error:
      raise ApiError(res.status_code, _detail(res))
    return res

  def _sign_in(self, res: httpx.Response) -> UserOut:
    data = res.json()
    user = UserOut.model_validate(data["user"])
    self.session.sign_in(str(data["token"]), user)
    return user

  async def register(self, *, name: str, email: str, password: str) -> UserOut:
    res = await self._request("POST", "/auth/register", auth=False, json={"name": name, "email": email, "password": password})
    return self._sign_in(res)

  async def login(self, *, email: str, password: str) -> UserOut:
    res = await self._request("POST", "/auth/login", auth=False, json={"email": email, "password": password})
    return self._sign_in(res)

  async def google_login(self, id_token: str) -> UserOut:
    res = await self._request("POST", "/auth/google", auth=False, json={"token": id_token})
    return self._sign_in(res)

  async def me(self) -> UserOut:
    try:
      res = await self._request("GET", "/auth/me")
    except ApiError as exc:
      if exc.status_code == 404:
        self.session.clear()
      raise
    user = UserOut.model_validate(res.json()["user"])
    self.session.update_user(user)
    return user

  def logout(self) -> None:
    self.session.clear()

  async def list_tasks(self) -> list[TaskOut]:
    res = await self._request("GET", "/tasks")
    return [TaskOut.model_validate(t) for t in res.json()]

  async def get_task(self, task_id: str) -> TaskOut:
    res = await self._request("GET", f"/tasks/{task_id}")
    return TaskOut.model_validate(res.json())

  async def create_task(
    self,
    *,
    title: str,
    due_date: datetime | str,
    description: str = "",
    files: Sequence[AttachmentIn | AttachmentOut | dict[str, Any]] = (),
  ) -> TaskOut:
    try:
      body = TaskCreateIn(title=title, description=description, dueDate=due_date, files=_attachments(files))
    except ValidationError as exc:
      raise _invalid(exc) from exc
    res = await self._request("POST", "/tasks", json=body.model_dump(mode="json"))
    return TaskOut.model_validate(res.json())

  async def update_task(self, task_id: str, **fields: Any) -> TaskOut:
    """Send only the given fields: title, description, due_date, completed, files."""
    data: dict[str, Any] = {}
    try:
      for key, value in fields.items():
        if key == "due_date":
          data["dueDate"] = value
        elif key == "files":
          data["files"] = _attachments(value)
        elif key in {"title", "description", "completed"}:
          data[key] = value
        else:
          raise ApiError(400, f"unknown task field: {key}")
      body = TaskUpdateIn(**data)
    except ValidationError as exc:
      raise _invalid(exc) from exc
    res = await self._request("PUT", f"/tasks/{task_id}", json=body.model_dump(mode="json", exclude_unset=True))
    return TaskOut.model_validate(res.json())

  async def delete_task(self, task_id: str) -> None:
    await self._request("DELETE", f"/tasks/{task_id}")

  async def complete_task(self, task_id: str) -> TaskOut:
    res = await self._request("PATCH", f"/tasks/{task_id}/complete")
    return TaskOut.model_validate(res.json())

  async def notifications(self) -> list[NotificationOut]:
    res = await self._request("GET", "/notifications")
    return [NotificationOut.model_validate(n) for n in res.json()]

  async def upload_file(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> AttachmentOut:
    res = await self._request("POST", "/files", files={"file": (name, data, content_type)})
    return AttachmentOut.model_validate(res.json())
