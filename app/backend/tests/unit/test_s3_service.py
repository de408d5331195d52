import sys
from pathlib import Path
from unittest.mock import Mock

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from app.backend.src.core.config import Settings
from app.backend.src.core.errors import NotFoundError, TransientStorageError
from app.backend.src.services import s3


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "MINIO_ENDPOINT": "http://minio:9000",
        "MINIO_REGION": "us-east-1",
        "MINIO_ACCESS_KEY": "minio",
        "MINIO_SECRET_KEY": "secret",
        "MINIO_BUCKET_NAME": "q-hub",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def test_create_client_uses_sigv4_and_path_style(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_boto3_client(service_name: str, **kwargs: object) -> Mock:
        captured["service_name"] = service_name
        captured.update(kwargs)
        return Mock()

    monkeypatch.setattr(s3.boto3, "client", fake_boto3_client)

    s3.create_s3_client(_settings())

    config = captured["config"]
    assert captured["service_name"] == "s3"
    assert captured["endpoint_url"] == "http://minio:9000"
    assert captured["region_name"] == "us-east-1"
    assert captured["aws_access_key_id"] == "minio"
    assert captured["aws_secret_access_key"] == "secret"
    assert getattr(config, "signature_version", None) == "s3v4"
    assert config.s3 == {"addressing_style": "path"}


def test_create_client_falls_back_to_default_credentials(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: dict[str, object] = {}

    def fake_boto3_client(service_name: str, **kwargs: object) -> Mock:
        captured.update(kwargs)
        return Mock()

    monkeypatch.setattr(s3.boto3, "client", fake_boto3_client)

    s3.create_s3_client(_settings(MINIO_SECRET_KEY=None))

    assert "aws_access_key_id" not in captured
    assert "aws_secret_access_key" not in captured


def test_create_client_requires_endpoint_and_region() -> None:
    with pytest.raises(RuntimeError, match="MINIO_REGION"):
        s3.create_s3_client(_settings(MINIO_REGION=None))


@pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
def test_missing_objects_raise_not_found(code: str) -> None:
    client = Mock()
    client.head_object.side_effect = _client_error(code)
    client.get_object.side_effect = _client_error(code, "GetObject")
    storage = s3.S3ObjectStorage(client, "q-hub")

    with pytest.raises(NotFoundError):
        storage.head("images/u1/a.png")
    with pytest.raises(NotFoundError):
        storage.get("images/u1/a.png")


def test_other_client_errors_are_transient() -> None:
    client = Mock()
    client.put_object.side_effect = _client_error("AccessDenied", "PutObject")
    client.delete_object.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")
    storage = s3.S3ObjectStorage(client, "q-hub")

    with pytest.raises(TransientStorageError):
        storage.put("images/u1/a.png", b"data")
    with pytest.raises(TransientStorageError):
        storage.delete("images/u1/a.png")


def test_requests_target_configured_bucket() -> None:
    client = Mock()
    body = Mock()
    client.get_object.return_value = {"Body": body}
    client.generate_presigned_url.return_value = "http://minio:9000/q-hub/k?X-Amz-Signature=x"
    storage = s3.S3ObjectStorage(client, "q-hub")

    assert storage.get("images/u1/a.png") is body
    url = storage.issue_signed_url("images/u1/a.png", 600)

    client.get_object.assert_called_once_with(Bucket="q-hub", Key="images/u1/a.png")
    client.generate_presigned_url.assert_called_once_with(
        "get_object",
        Params={"Bucket": "q-hub", "Key": "images/u1/a.png"},
        ExpiresIn=600,
    )
    assert url.startswith("http://minio:9000/q-hub/")
