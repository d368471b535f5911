"""匿名文件路由：上传、凭证下载与本地存储对象输出。

匿名接口不做身份校验，``file_id`` + ``secret_key`` 即访问凭证。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.packages.filevault.api.v1.schemas.files import (
    AnonymousDownloadBody,
    AnonymousDownloadResponse,
    AnonymousUploadResponse,
)
from app.packages.filevault.core.constants import HTTP_STATUS_CREATED
from app.packages.filevault.core.dependencies import get_db, get_object_store
from app.packages.filevault.core.exceptions import NotFoundOrDenied, StorageError
from app.packages.filevault.core.validation import ValidatedUpload, validated_upload
from app.packages.filevault.services.file_service import file_service
from app.packages.filevault.services.storage_backends import LocalBackend, ObjectStore

router = APIRouter(prefix="/files", tags=["anonymous files"])


@router.post("/upload", response_model=AnonymousUploadResponse, status_code=HTTP_STATUS_CREATED)
def upload_file(
    upload: ValidatedUpload = Depends(validated_upload),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """匿名上传，返回仅此一次可见的 ``secret_key``。"""
    return file_service.upload_anonymous(
        db,
        store=store,
        filename=upload.filename,
        content=upload.content,
        content_type=upload.content_type,
    )


@router.post("/download", response_model=AnonymousDownloadResponse)
def download_file(
    payload: AnonymousDownloadBody,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    return file_service.download_anonymous(
        db,
        store=store,
        file_id=payload.file_id,
        secret_key=payload.secret_key,
    )


@router.get("/local/{storage_key:path}")
def serve_local_file(storage_key: str, store: ObjectStore = Depends(get_object_store)):
    """输出本地存储中的对象；链接在签发前已经过访问控制。"""
    if not isinstance(store, LocalBackend):
        raise NotFoundOrDenied("File not found")
    try:
        path = store.open_path(storage_key)
    except StorageError:
        raise NotFoundOrDenied("File not found")
    return FileResponse(str(path), filename=path.name)
