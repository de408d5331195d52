"""Object key encoding for the Minio bucket layout ``base/owner/file``."""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

from app.backend.src.core.errors import MalformedKeyError

SEPARATOR = "/"


@dataclass(frozen=True)
class StoredObjectKey:
    """Composite identifier of a stored object."""

    base_path: str
    owner_id: str
    file_name: str

    @property
    def key(self) -> str:
        return encode_key(self.base_path, self.owner_id, self.file_name)

    def __str__(self) -> str:
        return self.key


def encode_key(base_path: str, owner_id: str, file_name: str) -> str:
    """Return the flat bucket key; internal slashes are not normalized."""

    return f"{base_path}{SEPARATOR}{owner_id}{SEPARATOR}{file_name}"


def extract_key(url_or_key: str, *, bucket: str | None = None) -> str:
    """Return the bucket key referenced by a signed URL or a bare key.

    With path-style addressing the URL path starts with the bucket name,
    which is dropped when ``bucket`` is given.
    """

    if not url_or_key:
        raise MalformedKeyError("Invalid input: URL or key is empty")

    parsed = urllib.parse.urlsplit(url_or_key)
    if parsed.scheme and parsed.netloc:
        path = urllib.parse.unquote(parsed.path).lstrip(SEPARATOR)
        if bucket and path.startswith(f"{bucket}{SEPARATOR}"):
            path = path[len(bucket) + 1 :]
        return path

    # NOTE: a file name containing slashes is indistinguishable from a key here.
    parts = url_or_key.split(SEPARATOR)
    if (
        len(parts) >= 3
        and not url_or_key.startswith("http")
        and not url_or_key.startswith(SEPARATOR)
    ):
        return url_or_key

    return url_or_key[1:] if url_or_key.startswith(SEPARATOR) else url_or_key


def decode_key(url_or_key: str, *, bucket: str | None = None) -> StoredObjectKey:
    """Split a URL or key into base path, owner id and file name.

    Segments after the owner id are joined back into the file name so
    nested virtual paths survive.
    """

    key = extract_key(url_or_key, bucket=bucket)
    parts = key.split(SEPARATOR, 2)
    if len(parts) < 3:
        raise MalformedKeyError(f"Invalid Minio key format: {key}")
    base_path, owner_id, file_name = parts
    return StoredObjectKey(base_path=base_path, owner_id=owner_id, file_name=file_name)


__all__ = ["SEPARATOR", "StoredObjectKey", "decode_key", "encode_key", "extract_key"]
