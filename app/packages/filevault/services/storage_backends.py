"""存储后端抽象与实现：统一封装本地磁盘与 S3 兼容对象存储的文件操作。

两种后端对外提供相同的能力集（put / url_for / delete），由部署配置在启动时选定一次，
业务编排层不感知具体后端类型。所有失败统一抛出 ``StorageError``。
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.packages.filevault.core.config import Settings
from app.packages.filevault.core.constants import LOCAL_FILES_ROUTE
from app.packages.filevault.core.exceptions import StorageError
from app.packages.filevault.core.logger import logger


class ObjectStore:
    """对象存储接口。"""

    name = "abstract"

    def put(self, key: str, content: bytes, content_type: Optional[str]) -> None:
        raise NotImplementedError

    def url_for(self, key: str, ttl: int) -> str:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def locate(self, key: str) -> str:
        """返回对象的稳定定位描述（写入元数据的 storage_url，不可直接下载）。"""
        raise NotImplementedError

    def close(self) -> None:
        return None


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBackend(ObjectStore):
    name = "local"

    def __init__(self, root: str | Path, *, base_url: str, api_prefix: str = "/api/v1"):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise StorageError(f"cannot create local root {self.root}: {exc}") from exc
        logger.info("Local upload directory ready: %s", self.root)

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        rel_norm = (key or "").strip().lstrip("/")
        if not rel_norm:
            raise StorageError("empty storage key", key=key)
        candidate = (self.root / rel_norm).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise StorageError("storage key escapes local root", key=key) from exc
        if candidate == self.root:
            raise StorageError("storage key resolves to local root", key=key)
        return candidate

    def open_path(self, key: str) -> Path:
        """返回已存在对象的磁盘路径，供本地下载路由直接输出。"""
        target = self._resolve(key)
        if not target.is_file():
            raise StorageError("local object not found", key=key)
        return target

    def put(self, key: str, content: bytes, content_type: Optional[str]) -> None:
        target = self._resolve(key)
        try:
            # 带命名空间的 key（如 user-42/...）需要先创建中间目录
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(content)
        except OSError as exc:
            raise StorageError(f"local write failed: {exc}", key=key) from exc
        logger.info("File stored locally: %s (%s bytes)", key, len(content))

    def url_for(self, key: str, ttl: int) -> str:
        # 本地链接不带签名，访问控制在签发前由业务层完成
        self._resolve(key)
        return f"{self.base_url}{self.api_prefix}{LOCAL_FILES_ROUTE}/{quote(key)}"

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            target.unlink()
        except OSError as exc:
            raise StorageError(f"local delete failed: {exc}", key=key) from exc
        logger.info("File deleted locally: %s", key)

    def locate(self, key: str) -> str:
        return self._resolve(key).as_uri()


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3Backend(ObjectStore):
    name = "s3"

    def __init__(
        self,
        *,
        bucket: str,
        endpoint_url: Optional[str],
        region: str,
        access_key_id: str,
        secret_access_key: str,
        client=None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            # R2 兼容：SigV4 + path-style
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )

    @property
    def client(self):
        return self._client

    def put(self, key: str, content: bytes, content_type: Optional[str]) -> None:
        params = {"Bucket": self.bucket, "Key": key, "Body": content}
        if content_type:
            params["ContentType"] = content_type
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"S3 put failed: {exc}", key=key) from exc
        logger.info("File uploaded to bucket %s: %s", self.bucket, key)

    def url_for(self, key: str, ttl: int) -> str:
        # 每次调用都重新签名，不缓存
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=int(ttl),
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"S3 presign failed: {exc}", key=key) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"S3 delete failed: {exc}", key=key) from exc
        logger.info("File deleted from bucket %s: %s", self.bucket, key)

    def locate(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quote(key)}"
        return f"s3://{self.bucket}/{key}"

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()


def build_object_store(settings: Settings) -> ObjectStore:
    """根据部署配置选择存储后端；显式要求 S3 但配置缺失时直接失败。"""
    choice = (settings.storage_backend or "auto").strip().lower()
    if choice not in {"auto", "s3", "local"}:
        raise RuntimeError(f"Unsupported STORAGE_BACKEND: {settings.storage_backend}")

    if choice == "s3" and not settings.r2_configured:
        raise RuntimeError("STORAGE_BACKEND=s3 but R2_* settings are missing or placeholders")

    if choice == "s3" or (choice == "auto" and settings.r2_configured):
        logger.info("Using S3-compatible storage bucket %s", settings.r2_bucket_name)
        return S3Backend(
            bucket=settings.r2_bucket_name,
            endpoint_url=settings.r2_endpoint,
            region=settings.r2_region,
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
        )

    if choice == "auto":
        logger.warning("R2 storage not configured, using local file storage")
    return LocalBackend(
        settings.local_upload_path,
        base_url=settings.public_base_url,
        api_prefix=settings.api_v1_str,
    )
