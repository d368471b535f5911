"""文件业务编排：上传、下载链接、列表、删除与分享。

编排顺序：
- 上传：先写对象存储，成功后再写元数据；写元数据失败时对象成为孤儿（记录日志，无记录引用即不可达）；
- 删除：先尽力删除对象（失败只记日志），再删除元数据；
- 下载：先经访问控制解析，再向存储后端申请链接。
本层不判断后端类型，只依赖 ``ObjectStore`` 的能力集。
"""

from __future__ import annotations

import os
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.filevault.core.config import get_settings
from app.packages.filevault.core.constants import HTTP_STATUS_INTERNAL_ERROR, SHARED_LINK_PATH
from app.packages.filevault.core.exceptions import (
    NotFoundOrDenied,
    StorageError,
    StorageUnavailable,
    ValidationFailed,
)
from app.packages.filevault.core.logger import logger
from app.packages.filevault.core.responses import create_response
from app.packages.filevault.crud.file_record import anonymous_file_crud, owned_file_crud
from app.packages.filevault.services.access_service import (
    Denied,
    FileHandle,
    capability_resolver,
    new_file_id,
    new_secret_key,
    ownership_resolver,
)
from app.packages.filevault.services.quota_service import quota_service
from app.packages.filevault.services.storage_backends import ObjectStore

KEY_RANDOM_BYTES = 8


def safe_filename(filename: Optional[str]) -> str:
    """去掉客户端文件名中的目录部分，避免写出命名空间之外。"""
    name = os.path.basename((filename or "").replace("\\", "/")).strip()
    if not name or name in {".", ".."}:
        raise ValidationFailed("Invalid file name")
    return name


def anonymous_storage_key(file_id: str, filename: str) -> str:
    # 随机段与 file_id 无关，两个上传即使抽中同一个 file_id 也不会写到同一个对象
    return f"{file_id}-{secrets.token_hex(KEY_RANDOM_BYTES)}-{filename}"


def owned_storage_key(user_id: int, filename: str) -> str:
    return f"user-{user_id}/{secrets.token_hex(KEY_RANDOM_BYTES)}-{filename}"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class FileService:
    # ----------------------------
    # 匿名文件
    # ----------------------------
    def _allocate_file_id(self, db: Session) -> str:
        attempts = max(get_settings().file_id_max_attempts, 1)
        for _ in range(attempts):
            candidate = new_file_id()
            if not anonymous_file_crud.file_id_exists(db, candidate):
                return candidate
            logger.warning("Anonymous file_id collision on %s, regenerating", candidate)
        raise StorageUnavailable("Failed to upload file", HTTP_STATUS_INTERNAL_ERROR)

    def upload_anonymous(
        self,
        db: Session,
        *,
        store: ObjectStore,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
    ) -> Dict[str, Any]:
        name = safe_filename(filename)
        file_id = self._allocate_file_id(db)
        secret_key = new_secret_key()
        storage_key = anonymous_storage_key(file_id, name)

        self._put_or_fail(store, storage_key, content, content_type)

        record = {
            "secret_key": secret_key,
            "storage_key": storage_key,
            "original_filename": name,
            "content_type": content_type,
            "byte_size": len(content),
            "storage_url": store.locate(storage_key),
        }
        attempts = max(get_settings().file_id_max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                anonymous_file_crud.insert_anonymous(db, {**record, "file_id": file_id})
                break
            except IntegrityError as exc:
                # 检查之后 file_id 被并发上传占用：唯一约束兜底，换 ID 重试，对象键不变
                if attempt == attempts:
                    self._report_orphan(storage_key, exc)
                    raise StorageUnavailable("Failed to upload file", HTTP_STATUS_INTERNAL_ERROR) from exc
                logger.warning("Anonymous file_id %s taken at insert time, regenerating", file_id)
                file_id = new_file_id()
            except SQLAlchemyError as exc:
                self._report_orphan(storage_key, exc)
                raise StorageUnavailable("Failed to upload file", HTTP_STATUS_INTERNAL_ERROR) from exc

        data = {
            "file_id": file_id,
            "secret_key": secret_key,
            "file_name": name,
            "url": self._url_or_none(store, storage_key),
        }
        return create_response("File uploaded successfully", data)

    def download_anonymous(
        self,
        db: Session,
        *,
        store: ObjectStore,
        file_id: Optional[str],
        secret_key: Optional[str],
    ) -> Dict[str, Any]:
        if not file_id or not secret_key:
            raise ValidationFailed("Missing file_id or secret_key")
        handle = capability_resolver.resolve(db, file_id, secret_key)
        if isinstance(handle, Denied):
            raise NotFoundOrDenied.capability()
        url = self._signed_url(store, handle)
        return create_response(
            "File download URL generated",
            {"file_id": handle.file_id, "file_name": handle.filename, "url": url},
        )

    # ----------------------------
    # 用户文件
    # ----------------------------
    def upload_for_user(
        self,
        db: Session,
        *,
        store: ObjectStore,
        user_id: int,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
    ) -> Dict[str, Any]:
        name = safe_filename(filename)
        quota_service.ensure_capacity(db, user_id, len(content))
        storage_key = owned_storage_key(user_id, name)

        self._put_or_fail(store, storage_key, content, content_type)

        try:
            row = owned_file_crud.insert_owned(
                db,
                {
                    "owner_user_id": user_id,
                    "filename": name,
                    "storage_key": storage_key,
                    "byte_size": len(content),
                    "content_type": content_type,
                    "is_public": False,
                    "access_token": None,
                },
            )
        except SQLAlchemyError as exc:
            self._report_orphan(storage_key, exc)
            raise StorageUnavailable("Failed to upload file", HTTP_STATUS_INTERNAL_ERROR) from exc

        data = {
            "file_id": row.id,
            "file_name": row.filename,
            "file_size": row.byte_size,
            "file_type": row.content_type,
        }
        return create_response("File uploaded successfully", data)

    def list_user_files(self, db: Session, *, store: ObjectStore, user_id: int) -> Dict[str, Any]:
        ttl = get_settings().download_url_ttl_seconds
        files: List[Dict[str, Any]] = []
        for row in owned_file_crud.list_owned_by_user(db, user_id):
            item = {
                "id": row.id,
                "filename": row.filename,
                "file_type": row.content_type,
                "file_size": row.byte_size,
                "is_public": bool(row.is_public),
                "created_at": _iso(row.create_time),
            }
            try:
                item["download_url"] = store.url_for(row.storage_key, ttl)
            except StorageError as exc:
                logger.error("Error generating URL for file %s: %s", row.id, exc)
                item["download_url"] = None
                item["error"] = "Could not generate download URL"
            files.append(item)
        return create_response("Files retrieved successfully", {"files": files})

    def get_file_metadata(self, db: Session, *, file_id: Any, user_id: int) -> Dict[str, Any]:
        # 元数据包含分享令牌，只对本人可见
        handle = ownership_resolver.resolve_for_write(db, file_id, user_id)
        if isinstance(handle, Denied):
            raise NotFoundOrDenied()
        data = {
            "id": handle.file_id,
            "filename": handle.filename,
            "file_type": handle.content_type,
            "file_size": handle.byte_size,
            "is_public": handle.is_public,
            "access_token": handle.access_token,
            "created_at": _iso(handle.created_at),
        }
        return create_response("File metadata retrieved successfully", data)

    def get_download_link(self, db: Session, *, store: ObjectStore, file_id: Any, user_id: int) -> Dict[str, Any]:
        handle = ownership_resolver.resolve_for_read(db, file_id, user_id)
        if isinstance(handle, Denied):
            raise NotFoundOrDenied()
        return create_response("Download link generated", self._download_payload(store, handle))

    def delete_file(self, db: Session, *, store: ObjectStore, file_id: Any, user_id: int) -> Dict[str, Any]:
        handle = ownership_resolver.resolve_for_write(db, file_id, user_id)
        if isinstance(handle, Denied):
            raise NotFoundOrDenied()

        try:
            store.delete(handle.storage_key)
        except StorageError as exc:
            # 存储删除失败不阻断元数据删除
            logger.error(
                "Storage deletion failed for %s: %s",
                handle.storage_key,
                exc,
                extra={"storage_key": handle.storage_key, "file_id": handle.file_id},
            )

        if owned_file_crud.delete_owned(db, int(handle.file_id), user_id) == 0:
            raise NotFoundOrDenied()
        logger.info(
            "File %s deleted by user %s", handle.file_id, user_id, extra={"file_id": handle.file_id, "user_id": user_id}
        )
        return create_response("File deleted successfully")

    def create_share_link(self, db: Session, *, file_id: Any, user_id: int) -> Dict[str, Any]:
        token = ownership_resolver.mint(db, file_id, user_id)
        if isinstance(token, Denied):
            raise NotFoundOrDenied()
        base_url = get_settings().frontend_url.rstrip("/")
        data = {
            "file_id": int(file_id),
            "access_token": token,
            "shareable_link": f"{base_url}{SHARED_LINK_PATH}/{token}",
        }
        return create_response("Shareable link created", data)

    def get_shared_file(self, db: Session, *, store: ObjectStore, access_token: str) -> Dict[str, Any]:
        handle = ownership_resolver.resolve_shared(db, access_token)
        if isinstance(handle, Denied):
            raise NotFoundOrDenied()
        return create_response("Download link generated", self._download_payload(store, handle))

    # ----------------------------
    # 配额与统计
    # ----------------------------
    def get_storage(self, db: Session, *, user_id: int) -> Dict[str, Any]:
        usage = quota_service.usage(db, user_id)
        return create_response("Storage usage retrieved", usage.to_dict())

    def get_file_count(self, db: Session, *, user_id: int) -> Dict[str, Any]:
        return create_response("File count retrieved", {"total_files": quota_service.file_count(db, user_id)})

    def get_stats(self, db: Session, *, user_id: int) -> Dict[str, Any]:
        return create_response("User statistics retrieved", quota_service.stats(db, user_id))

    # ----------------------------
    # 内部工具
    # ----------------------------
    def _put_or_fail(self, store: ObjectStore, key: str, content: bytes, content_type: Optional[str]) -> None:
        try:
            store.put(key, content, content_type)
        except StorageError as exc:
            logger.error("Object store put failed for %s: %s", key, exc)
            raise StorageUnavailable("Failed to upload file", HTTP_STATUS_INTERNAL_ERROR) from exc

    def _report_orphan(self, key: str, exc: Exception) -> None:
        logger.error(
            "Record insert failed after storing object, orphaned key=%s: %s",
            key,
            exc,
            extra={"storage_key": key},
        )

    def _signed_url(self, store: ObjectStore, handle: FileHandle) -> str:
        try:
            return store.url_for(handle.storage_key, get_settings().download_url_ttl_seconds)
        except StorageError as exc:
            logger.error("Error generating download link for %s: %s", handle.storage_key, exc)
            raise StorageUnavailable("Failed to generate download link") from exc

    def _url_or_none(self, store: ObjectStore, key: str) -> Optional[str]:
        # 上传已成功，链接签发失败不回滚
        try:
            return store.url_for(key, get_settings().download_url_ttl_seconds)
        except StorageError as exc:
            logger.error("Error generating URL for new upload %s: %s", key, exc)
            return None

    def _download_payload(self, store: ObjectStore, handle: FileHandle) -> Dict[str, Any]:
        return {
            "file_id": handle.file_id,
            "file_name": handle.filename,
            "download_url": self._signed_url(store, handle),
            "expires_in": get_settings().download_url_ttl_seconds,
        }


file_service = FileService()
