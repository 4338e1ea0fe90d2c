from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Protocol

from taskmate.config import Settings, settings
from taskmate.schemas import TaskOut

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationMessage:
  to_addr: str
  subject: str
  body: str


class MailTransport(Protocol):
  async def send(self, msg: NotificationMessage) -> dict[str, Any]: ...


class SmtpTransport:
  def __init__(self, cfg: Settings) -> None:
    self.host = (cfg.smtp_host or "").strip()
    self.port = int(cfg.smtp_port or 587)
    self.username = (cfg.smtp_username or "").strip()
    self.password = (cfg.smtp_password or "").strip()
    self.from_addr = (cfg.smtp_from or "").strip()
    self.starttls = bool(cfg.smtp_starttls)

  async def send(self, msg: NotificationMessage) -> dict[str, Any]:
    if not self.host or not self.from_addr:
      raise ValueError("SMTP settings missing host/from")

    def _send_sync() -> None:
      m = EmailMessage()
      m["Subject"] = msg.subject
      m["From"] = self.from_addr
      m["To"] = msg.to_addr
      m.set_content(msg.body)
      with smtplib.SMTP(host=self.host, port=self.port, timeout=15) as s:
        s.ehlo()
        if self.starttls:
          s.starttls()
          s.ehlo()
        if self.username and self.password:
          s.login(self.username, self.password)
        s.send_message(m)

    await asyncio.to_thread(_send_sync)
    return {"to": msg.to_addr, "host": self.host, "port": self.port}


class CompletionNotifier:
  """Emails a task's owner when the task is completed."""

  def __init__(self, transport: MailTransport) -> None:
    self.transport = transport

  async def task_completed(self, *, to_addr: str, task: TaskOut) -> bool:
    msg = NotificationMessage(
      to_addr=to_addr,
      subject=f"Task completed: {task.title}",
      body=f'Your task "{task.title}" was marked as complete.\n\nDue: {task.dueDate:%b %d, %Y}\n',
    )
    # Delivery problems stay here; the completion itself already succeeded.
    try:
      await self.transport.send(msg)
    except Exception:
      logger.exception("completion email failed task=%s to=%s", task.id, to_addr)
      return False
    logger.info("completion email sent task=%s", task.id)
    return True


def completion_notifier() -> CompletionNotifier | None:
  if not settings.completion_email_enabled:
    return None
  return CompletionNotifier(SmtpTransport(settings))
