"""Exceptions raised by the object storage layer."""

from __future__ import annotations


class StorageError(Exception):
    """Base class for object storage failures."""


class NotFoundError(StorageError):
    """The requested object does not exist in the bucket."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class OwnershipMismatchError(StorageError):
    """A delete was requested by an identity that does not own the object."""

    def __init__(self, requester_id: str, key: str) -> None:
        super().__init__(f"User ID mismatch: {requester_id} vs {key}")
        self.requester_id = requester_id
        self.key = key


class MalformedKeyError(StorageError, ValueError):
    """A filepath could not be decoded into base path, owner and file name."""


class FetchError(StorageError):
    """Downloading a remote source URL failed."""


class TransientStorageError(StorageError):
    """Any other failure reported by the storage client."""


__all__ = [
    "FetchError",
    "MalformedKeyError",
    "NotFoundError",
    "OwnershipMismatchError",
    "StorageError",
    "TransientStorageError",
]
