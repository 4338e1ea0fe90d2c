from __future__ import annotations

import logging
import sys


class _QuietThirdPartyFilter(logging.Filter):
  """Keep taskmate logs at the configured level; other libraries only from WARNING."""

  def filter(self, record: logging.LogRecord) -> bool:
    if record.name.startswith("taskmate"):
      return True
    return record.levelno >= logging.WARNING


def setup_logging(level: str | int = "INFO") -> None:
  """Install one stderr handler on the root logger. Safe to call more than once."""
  root = logging.getLogger()
  root.setLevel(level if isinstance(level, int) else str(level).upper())

  for h in list(root.handlers):
    if getattr(h, "_taskmate", False):
      root.removeHandler(h)

  handler = logging.StreamHandler(sys.stderr)
  handler.setFormatter(
    logging.Formatter(
      fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
      datefmt="%Y-%m-%d %H:%M:%S",
    )
  )
  handler.addFilter(_QuietThirdPartyFilter())
  handler._taskmate = True  # type: ignore[attr-defined]
  root.addHandler(handler)
  logging.captureWarnings(True)
