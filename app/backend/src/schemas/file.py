"""File record schemas shared with the host application."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class FileSource(str, Enum):
    """Origin tag stored on every file record."""

    LOCAL = "local"
    MINIO = "minio"
    S3 = "s3"
    FIREBASE = "firebase"
    AZURE_BLOB = "azure_blob"
    OPENAI = "openai"
    VECTORDB = "vectordb"


class FileRecord(BaseModel):
    """Subset of the host's file document read and written by storage code."""

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    file_id: str | None = None
    filepath: str | None = None
    source: str | None = None


class FileUrlUpdate(BaseModel):
    """A proposed ``filepath`` change handed to the persistence callback."""

    file_id: str
    filepath: str


class UploadResult(BaseModel):
    """Outcome of streaming a local file into the bucket."""

    filepath: str
    bytes: int


class RefreshedUrl(BaseModel):
    filepath: str
