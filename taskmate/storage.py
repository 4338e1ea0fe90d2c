from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

_SAFE_NAME_RE = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,16})?$")


@dataclass(frozen=True)
class StoredBlob:
  key: str
  path: str
  size: int


class BlobStore(Protocol):
  def put(self, data: bytes, *, filename: str | None) -> StoredBlob: ...

  def path_for(self, key: str) -> str | None: ...


class LocalBlobStore:
  """Blobs as flat files in one directory, named by a random hex key plus the original extension."""

  def __init__(self, root: str) -> None:
    self.root = root

  def put(self, data: bytes, *, filename: str | None) -> StoredBlob:
    os.makedirs(self.root, exist_ok=True)
    ext = os.path.splitext(filename or "")[1]
    if ext and not re.fullmatch(r"\.[A-Za-z0-9]{1,16}", ext):
      ext = ""
    key = f"{uuid.uuid4().hex}{ext}"
    path = os.path.join(self.root, key)
    with open(path, "wb") as f:
      f.write(data)
    return StoredBlob(key=key, path=path, size=len(data))

  def path_for(self, key: str) -> str | None:
    if not _SAFE_NAME_RE.fullmatch(key or ""):
      return None
    path = Path(self.root) / key
    return str(path) if path.is_file() else None
