"""Unit tests for the signed URL expiry policy."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest

from app.backend.src.core.storage import InMemoryObjectStorage
from app.backend.src.services.object_keys import extract_key
from app.backend.src.services.url_expiry import ExpiryPolicy, parse_amz_date

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
KEY = "images/u1/f1__a.png"


def _signed_url(issued_at: datetime, ttl_seconds: int) -> str:
    store = InMemoryObjectStorage(clock=lambda: issued_at)
    return store.issue_signed_url(KEY, ttl_seconds)


@pytest.fixture()
def policy() -> ExpiryPolicy:
    return ExpiryPolicy(clock=lambda: NOW)


def test_expired_url_is_stale_without_buffer(policy: ExpiryPolicy) -> None:
    url = _signed_url(NOW - timedelta(seconds=3700), 3600)

    assert policy.needs_refresh(url, buffer_seconds=0) is True


def test_recent_url_is_fresh_without_buffer(policy: ExpiryPolicy) -> None:
    url = _signed_url(NOW - timedelta(seconds=10), 3600)

    assert policy.needs_refresh(url, buffer_seconds=0) is False


def test_url_inside_buffer_is_refreshed_early(policy: ExpiryPolicy) -> None:
    url = _signed_url(NOW - timedelta(minutes=30), 3600)

    assert policy.needs_refresh(url, buffer_seconds=3600) is True
    assert policy.needs_refresh(url, buffer_seconds=60) is False


def test_max_age_overrides_embedded_ttl() -> None:
    policy = ExpiryPolicy(max_age_ms=1000, clock=lambda: NOW)
    url = _signed_url(NOW - timedelta(milliseconds=2000), 7 * 24 * 3600)

    assert policy.needs_refresh(url) is True


def test_max_age_keeps_young_url() -> None:
    policy = ExpiryPolicy(max_age_ms=60_000, clock=lambda: NOW)
    url = _signed_url(NOW - timedelta(seconds=5), 10)

    assert policy.needs_refresh(url, buffer_seconds=3600) is False


def test_unsigned_url_never_needs_refresh(policy: ExpiryPolicy) -> None:
    assert policy.needs_refresh("https://cdn.example.com/images/u1/a.png") is False


@pytest.mark.parametrize(
    "url",
    [
        "http://minio:9000/q-hub/images/u1/a.png?X-Amz-Signature=abc&X-Amz-Expires=3600",
        "http://minio:9000/q-hub/images/u1/a.png?X-Amz-Signature=abc&X-Amz-Date=20260115T120000Z",
        "http://minio:9000/q-hub/images/u1/a.png"
        "?X-Amz-Signature=abc&X-Amz-Date=2026-01-15&X-Amz-Expires=3600",
        "http://minio:9000/q-hub/images/u1/a.png"
        "?X-Amz-Signature=abc&X-Amz-Date=20260115T120000Z&X-Amz-Expires=soon",
        "images/u1/a.png",
        "",
    ],
)
def test_incomplete_or_unparseable_urls_are_stale(policy: ExpiryPolicy, url: str) -> None:
    assert policy.needs_refresh(url) is True


def test_parse_exposes_descriptor() -> None:
    issued_at = NOW - timedelta(hours=2)
    descriptor = ExpiryPolicy.parse(_signed_url(issued_at, 900))

    assert descriptor is not None
    assert descriptor.path == f"q-hub/{KEY}"
    assert extract_key(_signed_url(issued_at, 900), bucket="q-hub") == KEY
    assert descriptor.issued_at == issued_at
    assert descriptor.expires_at == issued_at + timedelta(seconds=900)


def test_parse_amz_date_is_utc() -> None:
    assert parse_amz_date("20260115T120000Z") == NOW


def test_blank_signature_still_counts_as_signed(policy: ExpiryPolicy) -> None:
    url = (
        "http://minio:9000/q-hub/images/u1/a.png"
        "?X-Amz-Signature=&X-Amz-Date=20200101T000000Z&X-Amz-Expires=3600"
    )

    assert policy.needs_refresh(url) is True
