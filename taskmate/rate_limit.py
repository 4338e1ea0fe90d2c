from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable


@dataclass
class _Window:
  reset_at: float
  count: int


class RateLimiter:
  """
  In-memory fixed-window counter keyed by arbitrary strings.

  Single-process only; every replica keeps its own windows. Expired windows
  are swept every `sweep_every` hits, so keys taken from request input
  (emails) cannot pile up.
  """

  def __init__(self, *, sweep_every: int = 1024, clock: Callable[[], float] = time.time) -> None:
    self._clock = clock
    self._lock = Lock()
    self._windows: dict[str, _Window] = {}
    self._sweep_every = max(1, int(sweep_every))
    self._hits = 0

  def __len__(self) -> int:
    return len(self._windows)

  def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """Count one hit; returns (allowed, retry_after_seconds)."""
    now = self._clock()
    with self._lock:
      self._hits += 1
      if self._hits % self._sweep_every == 0:
        self._sweep(now)
      w = self._windows.get(key)
      if w is None or now >= w.reset_at:
        self._windows[key] = _Window(reset_at=now + window_seconds, count=1)
        return True, 0
      if w.count >= limit:
        return False, max(1, int(w.reset_at - now))
      w.count += 1
      return True, 0

  def _sweep(self, now: float) -> None:
    expired = [k for k, w in self._windows.items() if now >= w.reset_at]
    for k in expired:
      del self._windows[k]

  def reset(self) -> None:
    with self._lock:
      self._windows.clear()
      self._hits = 0


limiter = RateLimiter()
