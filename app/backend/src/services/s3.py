"""Minimal S3 client helpers for the Minio backend."""

from __future__ import annotations

from typing import BinaryIO

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from app.backend.src.core.config import Settings
from app.backend.src.core.errors import NotFoundError, TransientStorageError

LOGGER = structlog.get_logger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def create_s3_client(settings: Settings) -> BaseClient:
    """Build a boto3 client for the configured S3-compatible endpoint.

    Static credentials are used when both halves are configured; otherwise
    boto3 falls back to its default credential chain.
    """

    settings.validate_minio_or_raise()
    client_kwargs: dict[str, object] = {
        "endpoint_url": settings.minio_endpoint,
        "region_name": settings.minio_region,
        "config": Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    }

    if settings.minio_static_credentials:
        client_kwargs["aws_access_key_id"] = settings.minio_access_key
        client_kwargs["aws_secret_access_key"] = settings.minio_secret_key
        LOGGER.info("minio_client_initialized", credentials="static")
    else:
        LOGGER.info("minio_client_initialized", credentials="default_chain")

    return boto3.client("s3", **client_kwargs)


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def is_not_found(exc: ClientError) -> bool:
    """Return ``True`` when ``exc`` reports a missing object."""

    return _error_code(exc) in _NOT_FOUND_CODES


class S3ObjectStorage:
    """Object storage client backed by a boto3 S3 client."""

    def __init__(self, client: BaseClient, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def _translate(self, exc: Exception, key: str, operation: str) -> Exception:
        if isinstance(exc, ClientError) and is_not_found(exc):
            return NotFoundError(key)
        LOGGER.error(
            "minio_request_failed",
            operation=operation,
            bucket=self.bucket,
            key=key,
            error=str(exc),
        )
        return TransientStorageError(f"{operation} failed for {key}: {exc}")

    def put(self, key: str, body: bytes | BinaryIO) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, key, "put_object") from exc

    def get(self, key: str) -> BinaryIO:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, key, "get_object") from exc
        return response["Body"]

    def head(self, key: str) -> dict[str, object]:
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, key, "head_object") from exc

    def delete(self, key: str) -> None:
        try:
            response = self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, key, "delete_object") from exc
        LOGGER.debug("minio_delete_response", key=key, response=str(response))

    def issue_signed_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, key, "generate_presigned_url") from exc


__all__ = ["S3ObjectStorage", "create_s3_client", "is_not_found"]
