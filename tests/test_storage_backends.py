"""存储后端单元测试：本地磁盘与 S3 兼容实现、启动期后端选择。"""

from urllib.parse import parse_qs, urlparse

import boto3
import pytest
from botocore.config import Config
from botocore.stub import Stubber

from app.packages.filevault.core.config import Settings
from app.packages.filevault.core.exceptions import StorageError
from app.packages.filevault.services.storage_backends import (
    LocalBackend,
    S3Backend,
    build_object_store,
)


def _s3_client():
    return boto3.client(
        "s3",
        endpoint_url="https://account.r2.example.com",
        region_name="auto",
        aws_access_key_id="AKIATEST",
        aws_secret_access_key="secret-test",
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


def test_local_put_creates_namespace_directories(tmp_path):
    backend = LocalBackend(tmp_path, base_url="http://files.test")

    backend.put("user-7/abcd-report.pdf", b"%PDF-1.4", "application/pdf")

    stored = tmp_path / "user-7" / "abcd-report.pdf"
    assert stored.read_bytes() == b"%PDF-1.4"
    assert backend.open_path("user-7/abcd-report.pdf") == stored.resolve()


@pytest.mark.parametrize("key", ["../escape.txt", "user-1/../../escape.txt", "", "   "])
def test_local_rejects_keys_outside_root(tmp_path, key):
    backend = LocalBackend(tmp_path / "root", base_url="http://files.test")

    with pytest.raises(StorageError):
        backend.put(key, b"x", "text/plain")
    assert not (tmp_path / "escape.txt").exists()


def test_local_url_is_stable_and_routed_through_api(tmp_path):
    backend = LocalBackend(tmp_path, base_url="http://files.test/", api_prefix="/api/v1")
    backend.put("a1b2c3d4e5-hello world.txt", b"hi", "text/plain")

    first = backend.url_for("a1b2c3d4e5-hello world.txt", 60)
    second = backend.url_for("a1b2c3d4e5-hello world.txt", 3600)

    assert first == second
    assert first == "http://files.test/api/v1/files/local/a1b2c3d4e5-hello%20world.txt"


def test_local_delete_missing_object_raises(tmp_path):
    backend = LocalBackend(tmp_path, base_url="http://files.test")
    backend.put("k.txt", b"x", "text/plain")

    backend.delete("k.txt")
    assert not (tmp_path / "k.txt").exists()
    with pytest.raises(StorageError):
        backend.delete("k.txt")


def test_local_locate_returns_file_uri(tmp_path):
    backend = LocalBackend(tmp_path, base_url="http://files.test")
    assert backend.locate("k.txt").startswith("file://")


def test_s3_put_sends_content_type():
    client = _s3_client()
    backend = S3Backend(
        bucket="vault",
        endpoint_url="https://account.r2.example.com",
        region="auto",
        access_key_id="AKIATEST",
        secret_access_key="secret-test",
        client=client,
    )
    with Stubber(client) as stubber:
        stubber.add_response(
            "put_object",
            {"ETag": '"etag"'},
            {"Bucket": "vault", "Key": "user-1/ab-a.txt", "Body": b"hello", "ContentType": "text/plain"},
        )
        backend.put("user-1/ab-a.txt", b"hello", "text/plain")
        stubber.assert_no_pending_responses()


def test_s3_errors_are_wrapped_as_storage_error():
    client = _s3_client()
    backend = S3Backend(
        bucket="vault",
        endpoint_url=None,
        region="auto",
        access_key_id="AKIATEST",
        secret_access_key="secret-test",
        client=client,
    )
    with Stubber(client) as stubber:
        stubber.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(StorageError) as excinfo:
            backend.delete("user-1/ab-a.txt")
    assert excinfo.value.key == "user-1/ab-a.txt"


def test_s3_presigned_url_carries_expiry_and_signature():
    backend = S3Backend(
        bucket="vault",
        endpoint_url="https://account.r2.example.com",
        region="auto",
        access_key_id="AKIATEST",
        secret_access_key="secret-test",
        client=_s3_client(),
    )

    url = backend.url_for("user-1/ab-a.txt", 3600)

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.path == "/vault/user-1/ab-a.txt"
    assert query["X-Amz-Expires"] == ["3600"]
    assert "X-Amz-Signature" in query


def test_s3_locate_uses_endpoint_when_present():
    backend = S3Backend(
        bucket="vault",
        endpoint_url="https://account.r2.example.com/",
        region="auto",
        access_key_id="AKIATEST",
        secret_access_key="secret-test",
        client=_s3_client(),
    )
    assert backend.locate("a.txt") == "https://account.r2.example.com/vault/a.txt"


def test_auto_backend_falls_back_to_local_when_r2_missing(tmp_path):
    settings = Settings(STORAGE_BACKEND="auto", R2_ENDPOINT=None, LOCAL_UPLOAD_DIR=str(tmp_path))
    store = build_object_store(settings)
    assert isinstance(store, LocalBackend)


def test_auto_backend_treats_placeholders_as_unconfigured(tmp_path):
    settings = Settings(
        STORAGE_BACKEND="auto",
        R2_ENDPOINT="https://your-account-id.r2.cloudflarestorage.com",
        R2_ACCESS_KEY_ID="key",
        R2_SECRET_ACCESS_KEY="secret",
        R2_BUCKET_NAME="vault",
        LOCAL_UPLOAD_DIR=str(tmp_path),
    )
    assert not settings.r2_configured
    assert isinstance(build_object_store(settings), LocalBackend)


def test_auto_backend_selects_s3_when_configured(tmp_path):
    settings = Settings(
        STORAGE_BACKEND="auto",
        R2_ENDPOINT="https://account.r2.example.com",
        R2_ACCESS_KEY_ID="key",
        R2_SECRET_ACCESS_KEY="secret",
        R2_BUCKET_NAME="vault",
        LOCAL_UPLOAD_DIR=str(tmp_path),
    )
    store = build_object_store(settings)
    assert isinstance(store, S3Backend)
    store.close()


def test_explicit_s3_without_config_fails_startup(tmp_path):
    settings = Settings(STORAGE_BACKEND="s3", R2_ENDPOINT=None, LOCAL_UPLOAD_DIR=str(tmp_path))
    with pytest.raises(RuntimeError):
        build_object_store(settings)


def test_unknown_backend_is_rejected(tmp_path):
    settings = Settings(STORAGE_BACKEND="ftp", LOCAL_UPLOAD_DIR=str(tmp_path))
    with pytest.raises(RuntimeError):
        build_object_store(settings)
