"""登录用户文件路由：上传、列表、元数据、下载链接、删除、分享与用量统计。

认证由 ``get_current_active_user`` 完成，业务层只接收可信的 ``user_id``。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.filevault.api.v1.schemas.files import (
    DownloadLinkResponse,
    FilesResponse,
    MutationResponse,
    ShareLinkResponse,
    UserUploadResponse,
)
from app.packages.filevault.core.constants import HTTP_STATUS_CREATED
from app.packages.filevault.core.dependencies import get_current_active_user, get_db, get_object_store
from app.packages.filevault.core.validation import ValidatedUpload, validated_upload
from app.packages.filevault.models.user import User
from app.packages.filevault.services.file_service import file_service
from app.packages.filevault.services.storage_backends import ObjectStore

router = APIRouter(tags=["user files"])


@router.post("/upload", response_model=UserUploadResponse, status_code=HTTP_STATUS_CREATED)
def upload_user_file(
    current_user: User = Depends(get_current_active_user),
    upload: ValidatedUpload = Depends(validated_upload),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    return file_service.upload_for_user(
        db,
        store=store,
        user_id=current_user.id,
        filename=upload.filename,
        content=upload.content,
        content_type=upload.content_type,
    )


@router.get("/files", response_model=FilesResponse)
def list_user_files(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_active_user),
):
    return file_service.list_user_files(db, store=store, user_id=current_user.id)


# 需在 /files/{file_id} 之前注册
@router.get("/files/count", response_model=FilesResponse)
def get_file_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return file_service.get_file_count(db, user_id=current_user.id)


@router.get("/files/{file_id}", response_model=FilesResponse)
def get_file_metadata(
    file_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return file_service.get_file_metadata(db, file_id=file_id, user_id=current_user.id)


@router.get("/download/{file_id}", response_model=DownloadLinkResponse)
def get_download_link(
    file_id: str,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_active_user),
):
    return file_service.get_download_link(db, store=store, file_id=file_id, user_id=current_user.id)


@router.delete("/files/{file_id}", response_model=MutationResponse)
def delete_file(
    file_id: str,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    current_user: User = Depends(get_current_active_user),
):
    return file_service.delete_file(db, store=store, file_id=file_id, user_id=current_user.id)


@router.post("/files/{file_id}/share", response_model=ShareLinkResponse)
def create_shareable_link(
    file_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return file_service.create_share_link(db, file_id=file_id, user_id=current_user.id)


@router.get("/shared/{access_token}", response_model=DownloadLinkResponse)
def get_shared_file(
    access_token: str,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """公开分享链接，无需登录。"""
    return file_service.get_shared_file(db, store=store, access_token=access_token)


@router.get("/storage", response_model=FilesResponse)
def get_storage(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return file_service.get_storage(db, user_id=current_user.id)


@router.get("/stats", response_model=FilesResponse)
def get_stats(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return file_service.get_stats(db, user_id=current_user.id)
