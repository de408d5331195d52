"""File storage endpoints backed by Minio."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import BinaryIO, Iterator

import structlog
from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from app.backend.src.core.config import get_settings
from app.backend.src.core.errors import (
    MalformedKeyError,
    NotFoundError,
    OwnershipMismatchError,
    StorageError,
)
from app.backend.src.schemas.file import FileRecord, RefreshedUrl, UploadResult
from app.backend.src.services.storage import MinioFileStorage

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

_CHUNK_SIZE = 64 * 1024


@lru_cache()
def get_file_storage() -> MinioFileStorage:
    """Return the process-wide storage strategy."""

    return MinioFileStorage(get_settings())


def get_requester_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the caller identity forwarded by the host's auth layer."""

    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return x_user_id


def _iter_stream(stream: BinaryIO) -> Iterator[bytes]:
    try:
        for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
            yield chunk
    finally:
        stream.close()


@router.post("/upload", response_model=UploadResult)
async def upload_file(
    file: UploadFile = File(...),
    file_id: str = Form(...),
    requester_id: str = Depends(get_requester_id),
    storage: MinioFileStorage = Depends(get_file_storage),
) -> UploadResult:
    """Spool the upload to disk and stream it into the bucket."""

    contents = await file.read()
    suffix = Path(file.filename or "").suffix
    with NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
        tmp_file.write(contents)
        temp_path = Path(tmp_file.name)

    try:
        return await run_in_threadpool(
            storage.put_object_from_local_file, requester_id, temp_path, file_id
        )
    except StorageError as exc:
        raise HTTPException(status_code=502, detail="Unable to store file") from exc


@router.get("/download")
def download_file(
    filepath: str = Query(..., min_length=1),
    _: str = Depends(get_requester_id),
    storage: MinioFileStorage = Depends(get_file_storage),
) -> StreamingResponse:
    """Stream an object's bytes back to the caller."""

    try:
        stream = storage.get_object_stream(filepath)
    except MalformedKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found") from exc
    except StorageError as exc:
        raise HTTPException(status_code=502, detail="Unable to read file") from exc

    return StreamingResponse(_iter_stream(stream), media_type="application/octet-stream")


@router.post("/delete", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    record: FileRecord,
    requester_id: str = Depends(get_requester_id),
    storage: MinioFileStorage = Depends(get_file_storage),
) -> Response:
    try:
        storage.delete_object(requester_id, record)
    except OwnershipMismatchError as exc:
        raise HTTPException(status_code=403, detail="Not allowed to delete this file") from exc
    except MalformedKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=502, detail="Unable to delete file") from exc

    LOGGER.info("file_deleted", file_id=record.file_id, requester_id=requester_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/refresh", response_model=RefreshedUrl)
def refresh_file_url(
    record: FileRecord,
    _: str = Depends(get_requester_id),
    storage: MinioFileStorage = Depends(get_file_storage),
) -> RefreshedUrl:
    """Return a signed URL that is not about to expire."""

    return RefreshedUrl(filepath=storage.refresh_one(record))
