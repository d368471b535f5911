"""上传校验依赖：文件是否存在、大小上限、类型白名单与扩展名一致性。"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from fastapi import File, UploadFile

from app.packages.filevault.core.config import get_settings
from app.packages.filevault.core.constants import ALLOWED_FILE_TYPES, MB
from app.packages.filevault.core.exceptions import ValidationFailed
from app.packages.filevault.core.logger import logger


@dataclass(frozen=True)
class ValidatedUpload:
    filename: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


def _size_exceeded(limit: int) -> ValidationFailed:
    return ValidationFailed(f"File size exceeds the limit of {limit // MB} MB")


def check_upload(filename: Optional[str], content: bytes, content_type: Optional[str]) -> ValidatedUpload:
    settings = get_settings()
    name = (filename or "").strip()
    if not name:
        raise ValidationFailed("No file uploaded")

    size = len(content)
    logger.info("Validating file: %s (%s bytes, %s)", name, size, content_type)

    if size > settings.max_upload_bytes:
        logger.warning("File size exceeded: %s (%s bytes)", name, size)
        raise _size_exceeded(settings.max_upload_bytes)

    mime = (content_type or "").split(";")[0].strip().lower()
    extensions = ALLOWED_FILE_TYPES.get(mime)
    if extensions is None:
        logger.warning("Invalid file type: %s (%s)", name, content_type)
        raise ValidationFailed(f"Invalid file type. Allowed types are: {', '.join(ALLOWED_FILE_TYPES)}")

    suffix = PurePosixPath(name.replace("\\", "/")).suffix.lower()
    if suffix not in extensions:
        logger.warning("File extension mismatch: %s (%s)", name, mime)
        raise ValidationFailed(f"File extension doesn't match content type. Expected: {', '.join(extensions)}")

    return ValidatedUpload(filename=name, content=content, content_type=mime)


def validated_upload(file: Optional[UploadFile] = File(None)) -> ValidatedUpload:
    """FastAPI 依赖：读取 multipart 中的 ``file`` 字段并完成校验。"""
    if file is None:
        raise ValidationFailed("No file uploaded")
    limit = get_settings().max_upload_bytes
    # 声明了大小就先拒绝，避免把超限文件读入内存
    if file.size is not None and file.size > limit:
        logger.warning("File size exceeded: %s (%s bytes)", file.filename, file.size)
        raise _size_exceeded(limit)
    # 最多多读一个字节，足以判断是否超限
    content = file.file.read(limit + 1)
    return check_upload(file.filename, content, file.content_type)
