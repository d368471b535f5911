"""文件上传/下载/分享相关的请求与响应模型。"""

from typing import Any, Optional

from pydantic import BaseModel

from app.packages.filevault.api.v1.schemas.common import ResponseEnvelope


class AnonymousDownloadBody(BaseModel):
    # 缺失字段由业务层给出明确提示，这里不做必填约束
    file_id: Optional[str] = None
    secret_key: Optional[str] = None


class AnonymousUploadData(BaseModel):
    file_id: str
    secret_key: str
    file_name: str
    url: Optional[str] = None


class AnonymousDownloadData(BaseModel):
    file_id: str
    file_name: str
    url: str


class UserUploadData(BaseModel):
    file_id: int
    file_name: str
    file_size: int
    file_type: Optional[str] = None


class DownloadLinkData(BaseModel):
    file_id: int
    file_name: str
    download_url: str
    expires_in: int


class ShareLinkData(BaseModel):
    file_id: int
    access_token: str
    shareable_link: str


AnonymousUploadResponse = ResponseEnvelope[AnonymousUploadData]
AnonymousDownloadResponse = ResponseEnvelope[AnonymousDownloadData]
UserUploadResponse = ResponseEnvelope[UserUploadData]
DownloadLinkResponse = ResponseEnvelope[DownloadLinkData]
ShareLinkResponse = ResponseEnvelope[ShareLinkData]
FilesResponse = ResponseEnvelope[dict]
MutationResponse = ResponseEnvelope[Any]
