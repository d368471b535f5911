"""常量定义：状态码、统一提示语与上传白名单。"""

from fastapi import status

HTTP_STATUS_OK = status.HTTP_200_OK
HTTP_STATUS_CREATED = status.HTTP_201_CREATED
HTTP_STATUS_BAD_REQUEST = status.HTTP_400_BAD_REQUEST
HTTP_STATUS_UNAUTHORIZED = status.HTTP_401_UNAUTHORIZED
HTTP_STATUS_FORBIDDEN = status.HTTP_403_FORBIDDEN
HTTP_STATUS_NOT_FOUND = status.HTTP_404_NOT_FOUND
HTTP_STATUS_CONFLICT = status.HTTP_409_CONFLICT
HTTP_STATUS_PAYLOAD_TOO_LARGE = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
HTTP_STATUS_INTERNAL_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR
HTTP_STATUS_SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE

ACCESS_TOKEN_TYPE = "bearer"

# 对外统一的“不存在或无权限”提示，不区分具体原因
OWNED_FILE_DENIED_MESSAGE = "File not found or you don't have permission"
CAPABILITY_DENIED_MESSAGE = "Invalid file_id or secret_key"

LOCAL_FILES_ROUTE = "/files/local"
SHARED_LINK_PATH = "/shared"

MB = 1024 * 1024

# content-type -> 允许的扩展名
ALLOWED_FILE_TYPES: dict[str, tuple[str, ...]] = {
    # Images
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
    # Documents
    "application/pdf": (".pdf",),
    "application/msword": (".doc",),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": (".docx",),
    "application/vnd.ms-excel": (".xls",),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": (".xlsx",),
    "application/vnd.ms-powerpoint": (".ppt",),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": (".pptx",),
    # Archives
    "application/zip": (".zip",),
    "application/x-rar-compressed": (".rar",),
    "application/x-7z-compressed": (".7z",),
    # Text
    "text/plain": (".txt",),
    "text/csv": (".csv",),
    "text/html": (".html", ".htm"),
    # Media
    "audio/mpeg": (".mp3",),
    "video/mp4": (".mp4",),
}

# 统计面板中视为“文档”的类型
DOCUMENT_CONTENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
)
