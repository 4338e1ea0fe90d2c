from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable

from taskmate.schemas import UserOut

logger = logging.getLogger(__name__)


class SessionContext:
  """
  Client-side session: the bearer token plus the last-known user profile.

  Optionally persisted to a JSON file so a restarted client picks the
  session back up. Create one at app start and pass it to whatever needs it;
  `clear()` ends it (logout, or the server rejecting the token).
  """

  def __init__(self, path: str | Path | None = None) -> None:
    self.path = Path(path) if path else None
    self.token: str | None = None
    self.user: UserOut | None = None
    self._listeners: list[Callable[[], None]] = []

  @classmethod
  def load(cls, path: str | Path | None = None) -> SessionContext:
    ctx = cls(path)
    if ctx.path is None or not ctx.path.is_file():
      return ctx
    try:
      raw = json.loads(ctx.path.read_text(encoding="utf-8"))
      token = raw.get("token")
      user = raw.get("user")
      if isinstance(token, str) and token and isinstance(user, dict):
        ctx.token = token
        ctx.user = UserOut.model_validate(user)
    except (OSError, ValueError) as exc:
      logger.warning("ignoring unreadable session file %s: %s", ctx.path, exc)
      ctx.token = None
      ctx.user = None
    return ctx

  @property
  def is_authenticated(self) -> bool:
    return bool(self.token)

  @property
  def owner_key(self) -> str | None:
    if not self.token or self.user is None:
      return None
    return self.user.id

  def sign_in(self, token: str, user: UserOut) -> None:
    self.token = token
    self.user = user
    self._save()

  def update_user(self, user: UserOut) -> None:
    self.user = user
    self._save()

  def on_clear(self, callback: Callable[[], None]) -> None:
    self._listeners.append(callback)

  def clear(self) -> None:
    was_active = self.token is not None
    self.token = None
    self.user = None
    if self.path is not None:
      self.path.unlink(missing_ok=True)
    if was_active:
      for cb in list(self._listeners):
        cb()

  def _save(self) -> None:
    if self.path is None:
      return
    self.path.parent.mkdir(parents=True, exist_ok=True)
    data = {"token": self.token, "user": self.user.model_dump() if self.user else None}
    self.path.write_text(json.dumps(data), encoding="utf-8")
