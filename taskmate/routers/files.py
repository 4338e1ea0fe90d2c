from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from taskmate.config import settings
from taskmate.deps import get_blob_store, get_owner_id
from taskmate.models import new_id
from taskmate.schemas import AttachmentOut
from taskmate.storage import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.post("", response_model=AttachmentOut, status_code=status.HTTP_201_CREATED)
async def upload_file(
  file: UploadFile = File(...),
  owner_id: str = Depends(get_owner_id),
  store: BlobStore = Depends(get_blob_store),
) -> AttachmentOut:
  data = await file.read(int(settings.max_attachment_bytes) + 1)
  if len(data) > int(settings.max_attachment_bytes):
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Attachment too large")
  blob = store.put(data, filename=file.filename)
  logger.info("file stored key=%s owner=%s bytes=%d", blob.key, owner_id, blob.size)
  return AttachmentOut(
    id=new_id(),
    name=file.filename or blob.key,
    url=f"/files/{blob.key}",
    type=file.content_type or "application/octet-stream",
    size=blob.size,
  )


@router.get("/{key}")
async def download_file(key: str, owner_id: str = Depends(get_owner_id), store: BlobStore = Depends(get_blob_store)) -> FileResponse:
  path = store.path_for(key)
  if not path:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
  return FileResponse(path=path)
