"""Minio file storage: uploads, downloads, deletions and signed URL refresh."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Sequence

import httpx
import structlog

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.core.errors import (
    FetchError,
    MalformedKeyError,
    NotFoundError,
    OwnershipMismatchError,
    StorageError,
)
from app.backend.src.core.storage import ObjectStorageClient
from app.backend.src.schemas.file import FileRecord, FileSource, FileUrlUpdate, UploadResult
from app.backend.src.services.metrics import minio_operations_total, minio_url_refreshes_total
from app.backend.src.services.object_keys import StoredObjectKey, decode_key, encode_key
from app.backend.src.services.s3 import S3ObjectStorage, create_s3_client
from app.backend.src.services.url_expiry import DEFAULT_BUFFER_SECONDS, ExpiryPolicy

LOGGER = structlog.get_logger(__name__)

PersistCallback = Callable[[list[FileUrlUpdate]], None]


@contextmanager
def _track(operation: str) -> Iterator[None]:
    try:
        yield
    except Exception:
        minio_operations_total.labels(operation=operation, status="failure").inc()
        raise
    minio_operations_total.labels(operation=operation, status="success").inc()


def _remove_temp_file(path: Path) -> None:
    try:
        path.unlink()
    except OSError as exc:
        LOGGER.error("minio_temp_file_cleanup_failed", path=str(path), error=str(exc))


class MinioFileStorage:
    """File storage strategy backed by a Minio bucket.

    The storage client is created on first use from ``settings`` and owned by
    this instance for its lifetime. Pass ``client`` to supply one directly.
    """

    source = FileSource.MINIO.value

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: ObjectStorageClient | None = None,
        expiry_policy: ExpiryPolicy | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self.expiry_policy = expiry_policy or ExpiryPolicy(
            max_age_ms=self.settings.minio_refresh_expiry_ms
        )

    @property
    def client(self) -> ObjectStorageClient:
        if self._client is None:
            self._client = S3ObjectStorage(
                create_s3_client(self.settings), self.settings.minio_bucket_name
            )
        return self._client

    @property
    def bucket(self) -> str:
        return self.settings.minio_bucket_name

    @property
    def url_expiry_seconds(self) -> int:
        return self.settings.minio_url_expiry_seconds

    def _key(self, owner_id: str, file_name: str, base_path: str | None) -> str:
        return encode_key(base_path or self.settings.minio_base_path, owner_id, file_name)

    def decode(self, url_or_key: str) -> StoredObjectKey:
        return decode_key(url_or_key, bucket=self.bucket)

    # ------------------------------------------------------------------
    # Single-object operations
    # ------------------------------------------------------------------

    def get_url(self, owner_id: str, file_name: str, base_path: str | None = None) -> str:
        """Return a signed read URL for an existing object."""

        key = self._key(owner_id, file_name, base_path)
        try:
            with _track("sign"):
                return self.client.issue_signed_url(key, self.url_expiry_seconds)
        except StorageError as exc:
            LOGGER.error("minio_sign_failed", key=key, error=str(exc))
            raise

    def put_object(
        self,
        owner_id: str,
        payload: bytes | BinaryIO,
        file_name: str,
        base_path: str | None = None,
    ) -> str:
        """Store ``payload`` under the owner's namespace and return a signed URL."""

        key = self._key(owner_id, file_name, base_path)
        try:
            with _track("put"):
                self.client.put(key, payload)
        except StorageError as exc:
            LOGGER.error("minio_upload_failed", key=key, error=str(exc))
            raise
        LOGGER.info("minio_uploaded", bucket=self.bucket, key=key)
        return self.get_url(owner_id, file_name, base_path)

    def put_object_from_remote_url(
        self,
        owner_id: str,
        source_url: str,
        file_name: str,
        base_path: str | None = None,
    ) -> str:
        """Download ``source_url`` into memory and store it; no retries."""

        try:
            with httpx.Client(
                timeout=self.settings.minio_fetch_timeout_seconds,
                follow_redirects=True,
            ) as http:
                response = http.get(source_url)
                response.raise_for_status()
                data = response.content
        except httpx.HTTPError as exc:
            LOGGER.error("minio_remote_fetch_failed", url=source_url, error=str(exc))
            raise FetchError(f"Unable to fetch {source_url}: {exc}") from exc

        return self.put_object(owner_id, data, file_name, base_path)

    def put_object_from_local_file(
        self,
        owner_id: str,
        local_path: str | Path,
        file_id: str,
        base_path: str | None = None,
    ) -> UploadResult:
        """Stream a local temporary file to the bucket, then remove it.

        The temporary file is removed whether or not the upload succeeds.
        """

        path = Path(local_path)
        file_name = f"{file_id}__{path.name}"
        key = self._key(owner_id, file_name, base_path)

        try:
            size = path.stat().st_size
            with _track("put"), path.open("rb") as handle:
                self.client.put(key, handle)
            LOGGER.info("minio_streamed", bucket=self.bucket, key=key, bytes=size)
            filepath = self.get_url(owner_id, file_name, base_path)
        except (OSError, StorageError) as exc:
            LOGGER.error("minio_stream_upload_failed", key=key, error=str(exc))
            raise
        finally:
            _remove_temp_file(path)

        return UploadResult(filepath=filepath, bytes=size)

    def delete_object(self, requester_id: str, record: FileRecord) -> None:
        """Delete the object behind ``record`` if ``requester_id`` owns it.

        Deleting a missing object succeeds. A post-delete probe that still
        sees the object is logged, not raised.
        """

        stored = self.decode(record.filepath or "")
        key = stored.key
        if not stored.owner_id or stored.owner_id not in requester_id:
            LOGGER.error("minio_delete_owner_mismatch", requester_id=requester_id, key=key)
            raise OwnershipMismatchError(requester_id, key)

        try:
            self.client.head(key)
        except NotFoundError:
            LOGGER.warning("minio_delete_missing_object", key=key)
            return

        try:
            with _track("delete"):
                self.client.delete(key)
        except StorageError as exc:
            LOGGER.error("minio_delete_failed", key=key, error=str(exc))
            raise

        try:
            self.client.head(key)
        except NotFoundError:
            LOGGER.debug("minio_delete_verified", key=key)
        except StorageError as exc:
            LOGGER.error("minio_delete_verify_failed", key=key, error=str(exc))
        else:
            LOGGER.warning("minio_object_visible_after_delete", key=key)

    def get_object_stream(self, url_or_key: str) -> BinaryIO:
        """Open a read stream for the object referenced by ``url_or_key``."""

        key = self.decode(url_or_key).key
        try:
            with _track("get"):
                return self.client.get(key)
        except NotFoundError:
            LOGGER.warning("minio_object_not_found", key=key)
            raise
        except StorageError as exc:
            LOGGER.error("minio_stream_failed", key=key, error=str(exc))
            raise

    # ------------------------------------------------------------------
    # Signed URL refresh
    # ------------------------------------------------------------------

    def needs_refresh(
        self, signed_url: str, buffer_seconds: int = DEFAULT_BUFFER_SECONDS
    ) -> bool:
        return self.expiry_policy.needs_refresh(signed_url, buffer_seconds)

    def _reissue(self, current_url: str) -> str:
        stored = self.decode(current_url)
        return self.get_url(stored.owner_id, stored.file_name, stored.base_path)

    def get_new_url(self, current_url: str) -> str | None:
        """Reissue a signed URL for the object behind ``current_url``."""

        try:
            return self._reissue(current_url)
        except MalformedKeyError as exc:
            LOGGER.warning("minio_key_undecodable", filepath=current_url, error=str(exc))
        except StorageError as exc:
            LOGGER.error("minio_new_url_failed", filepath=current_url, error=str(exc))
        return None

    def _refreshable(self, record: FileRecord | None) -> bool:
        return bool(record and record.filepath and record.source == self.source)

    def refresh_many(
        self,
        records: Sequence[FileRecord] | None,
        persist: PersistCallback,
        buffer_seconds: int = DEFAULT_BUFFER_SECONDS,
    ) -> Sequence[FileRecord] | None:
        """Refresh stale signed URLs in place and persist the changes once."""

        if not records:
            return records

        updates: list[FileUrlUpdate] = []
        for record in records:
            if not record.file_id or not self._refreshable(record):
                continue
            if not self.needs_refresh(record.filepath, buffer_seconds):
                continue

            try:
                new_url = self._reissue(record.filepath)
            except MalformedKeyError as exc:
                minio_url_refreshes_total.labels(outcome="skipped").inc()
                LOGGER.warning(
                    "minio_refresh_skipped", file_id=record.file_id, error=str(exc)
                )
                continue
            except Exception as exc:
                minio_url_refreshes_total.labels(outcome="failed").inc()
                LOGGER.error(
                    "minio_refresh_failed", file_id=record.file_id, error=str(exc)
                )
                continue

            minio_url_refreshes_total.labels(outcome="refreshed").inc()
            updates.append(FileUrlUpdate(file_id=record.file_id, filepath=new_url))
            record.filepath = new_url

        if updates:
            persist(updates)

        return records

    def refresh_one(
        self,
        record: FileRecord | None,
        buffer_seconds: int = DEFAULT_BUFFER_SECONDS,
    ) -> str:
        """Return a fresh URL for ``record``, or its current filepath.

        Never raises; any failure falls back to the original filepath.
        """

        if not self._refreshable(record):
            return (record.filepath if record else None) or ""

        filepath = record.filepath
        if not self.needs_refresh(filepath, buffer_seconds):
            return filepath

        try:
            new_url = self._reissue(filepath)
        except MalformedKeyError as exc:
            minio_url_refreshes_total.labels(outcome="skipped").inc()
            LOGGER.warning("minio_key_undecodable", filepath=filepath, error=str(exc))
            return filepath
        except Exception as exc:
            minio_url_refreshes_total.labels(outcome="failed").inc()
            LOGGER.error("minio_refresh_failed", filepath=filepath, error=str(exc))
            return filepath

        minio_url_refreshes_total.labels(outcome="refreshed").inc()
        LOGGER.debug("minio_url_refreshed", filepath=filepath)
        return new_url


__all__ = ["MinioFileStorage", "PersistCallback"]
