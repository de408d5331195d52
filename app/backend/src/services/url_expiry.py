"""Expiry detection for presigned object URLs."""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from app.backend.src.core.storage import AMZ_DATE_FORMAT

LOGGER = structlog.get_logger(__name__)

SIGNATURE_PARAM = "X-Amz-Signature"
DATE_PARAM = "X-Amz-Date"
EXPIRES_PARAM = "X-Amz-Expires"

DEFAULT_BUFFER_SECONDS = 3600


@dataclass(frozen=True)
class SignedUrlDescriptor:
    """Issuance details carried by a presigned URL.

    ``path`` is the URL path, which includes the bucket under path-style
    addressing; use ``extract_key`` for the object key.
    """

    path: str
    issued_at: datetime
    ttl_seconds: int

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.ttl_seconds)


class IncompleteSignatureError(ValueError):
    """The URL is signed but lacks its issuance date or lifetime."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_amz_date(value: str) -> datetime:
    """Parse the compact ISO-8601 basic format ``YYYYMMDDTHHMMSSZ``."""

    return datetime.strptime(value, AMZ_DATE_FORMAT).replace(tzinfo=timezone.utc)


class ExpiryPolicy:
    """Decide whether a previously issued signed URL should be reissued.

    With ``max_age_ms`` set, a URL is stale once it is that old regardless of
    its embedded lifetime. Otherwise it is stale once it expires within
    ``buffer_seconds`` from now.
    """

    def __init__(
        self,
        *,
        max_age_ms: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.max_age_ms = max_age_ms
        self._clock = clock

    @staticmethod
    def parse(signed_url: str) -> SignedUrlDescriptor | None:
        """Return the descriptor for ``signed_url``, ``None`` if it is unsigned.

        Raises ``ValueError`` when the URL cannot be interpreted.
        """

        parsed = urllib.parse.urlsplit(signed_url)
        if not (parsed.scheme and parsed.netloc):
            raise ValueError(f"Not an absolute URL: {signed_url!r}")

        params = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)
        if SIGNATURE_PARAM not in params:
            return None

        expires_values = params.get(EXPIRES_PARAM)
        date_values = params.get(DATE_PARAM)
        if not expires_values or not date_values:
            raise IncompleteSignatureError(signed_url)

        return SignedUrlDescriptor(
            path=urllib.parse.unquote(parsed.path).lstrip("/"),
            issued_at=parse_amz_date(date_values[0]),
            ttl_seconds=int(expires_values[0]),
        )

    def needs_refresh(
        self, signed_url: str, buffer_seconds: int = DEFAULT_BUFFER_SECONDS
    ) -> bool:
        try:
            descriptor = self.parse(signed_url)
        except IncompleteSignatureError:
            return True
        except (TypeError, ValueError) as exc:
            LOGGER.warning("url_expiration_check_failed", url=signed_url, error=str(exc))
            return True

        if descriptor is None:
            return False

        now = self._clock()
        if self.max_age_ms is not None:
            age = now - descriptor.issued_at
            return age >= timedelta(milliseconds=self.max_age_ms)

        return descriptor.expires_at <= now + timedelta(seconds=buffer_seconds)


__all__ = [
    "DEFAULT_BUFFER_SECONDS",
    "ExpiryPolicy",
    "IncompleteSignatureError",
    "SignedUrlDescriptor",
    "parse_amz_date",
]
