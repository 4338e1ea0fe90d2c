from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from taskmate.schemas import NotificationOut


@dataclass
class FeedItem:
  notification: NotificationOut
  read: bool = False


class NotificationFeed:
  """Notification badge state. Read flags only live until the next `replace`."""

  def __init__(self) -> None:
    self._items: list[FeedItem] = []

  @property
  def items(self) -> list[FeedItem]:
    return list(self._items)

  @property
  def unread_count(self) -> int:
    return sum(1 for i in self._items if not i.read)

  def replace(self, notifications: Iterable[NotificationOut]) -> None:
    self._items = [FeedItem(notification=n) for n in notifications]

  def mark_read(self, notification_id: str) -> bool:
    for item in self._items:
      if item.notification.id == notification_id:
        item.read = True
        return True
    return False

  def mark_all_read(self) -> None:
    for item in self._items:
      item.read = True

  def clear(self) -> None:
    self._items = []
