"""Storage helpers for S3 interactions."""

from __future__ import annotations

import hashlib
import urllib.parse
from datetime import datetime, timezone
from io import BytesIO
from typing import BinaryIO, Callable, Protocol

from .errors import NotFoundError

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


class ObjectStorageClient(Protocol):
    """Minimal protocol for object storage backends."""

    def put(self, key: str, body: bytes | BinaryIO) -> None:
        """Persist bytes or a binary stream under ``key``."""

    def get(self, key: str) -> BinaryIO:
        """Return a readable stream; raise ``NotFoundError`` when absent."""

    def head(self, key: str) -> dict[str, object]:
        """Return object metadata; raise ``NotFoundError`` when absent."""

    def delete(self, key: str) -> None:
        """Remove the object stored under ``key``."""

    def issue_signed_url(self, key: str, ttl_seconds: int) -> str:
        """Return a time-limited read URL for ``key``."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryObjectStorage:
    """In-memory object store for local development and tests.

    Signed URLs use the same ``X-Amz-*`` query parameters as a real
    presigned request so they flow through the expiry policy unchanged.
    """

    def __init__(
        self,
        *,
        bucket: str = "q-hub",
        endpoint: str = "http://localhost:9000",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.bucket = bucket
        self.endpoint = endpoint.rstrip("/")
        self._clock = clock
        self._store: dict[str, bytes] = {}

    def put(self, key: str, body: bytes | BinaryIO) -> None:
        data = body if isinstance(body, (bytes, bytearray)) else body.read()
        self._store[key] = bytes(data)

    def get(self, key: str) -> BinaryIO:
        if key not in self._store:
            raise NotFoundError(key)
        return BytesIO(self._store[key])

    def head(self, key: str) -> dict[str, object]:
        if key not in self._store:
            raise NotFoundError(key)
        return {"ContentLength": len(self._store[key])}

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def issue_signed_url(self, key: str, ttl_seconds: int) -> str:
        amz_date = self._clock().strftime(AMZ_DATE_FORMAT)
        signature = hashlib.sha256(f"{key}:{amz_date}:{ttl_seconds}".encode()).hexdigest()
        query = urllib.parse.urlencode(
            {
                "X-Amz-Algorithm": "AWS4-HMAC-SHA256",
                "X-Amz-Date": amz_date,
                "X-Amz-Expires": str(ttl_seconds),
                "X-Amz-SignedHeaders": "host",
                "X-Amz-Signature": signature,
            }
        )
        path = urllib.parse.quote(f"{self.bucket}/{key}", safe="/")
        return f"{self.endpoint}/{path}?{query}"

    def keys(self) -> list[str]:
        return sorted(self._store)


__all__ = ["AMZ_DATE_FORMAT", "InMemoryObjectStorage", "ObjectStorageClient"]
