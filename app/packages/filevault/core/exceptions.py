"""异常处理模块：定义统一的业务异常、错误分类与响应格式。

对外错误只包含 ``{success: false, message}``；后端原始错误细节只写入运行日志。
"""

import secrets

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.packages.filevault.core.constants import (
    CAPABILITY_DENIED_MESSAGE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_PAYLOAD_TOO_LARGE,
    HTTP_STATUS_SERVICE_UNAVAILABLE,
    OWNED_FILE_DENIED_MESSAGE,
)
from app.packages.filevault.core.logger import logger


class AppException(HTTPException):
    """携带对客户端安全的提示语的业务异常，由全局处理器转换为统一响应体。"""

    def __init__(self, msg: str, code: int = HTTP_STATUS_BAD_REQUEST) -> None:
        super().__init__(status_code=code, detail=msg)


class NotFoundOrDenied(AppException):
    """记录不存在、凭证不匹配或非本人文件，一律以同一结果返回。"""

    def __init__(self, msg: str = OWNED_FILE_DENIED_MESSAGE) -> None:
        super().__init__(msg, HTTP_STATUS_NOT_FOUND)

    @classmethod
    def capability(cls) -> "NotFoundOrDenied":
        return cls(CAPABILITY_DENIED_MESSAGE)


class ValidationFailed(AppException):
    def __init__(self, msg: str) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_REQUEST)


class StorageUnavailable(AppException):
    """对象存储操作失败；默认 503 表示可重试。"""

    def __init__(self, msg: str, code: int = HTTP_STATUS_SERVICE_UNAVAILABLE) -> None:
        super().__init__(msg, code)


class QuotaExceeded(AppException):
    """仅在开启 QUOTA_ENFORCED 时抛出。"""

    def __init__(self, msg: str = "Storage quota exceeded") -> None:
        super().__init__(msg, HTTP_STATUS_PAYLOAD_TOO_LARGE)


class StorageError(Exception):
    """存储后端内部错误，不直接暴露给客户端。"""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


def _error_payload(message: str) -> dict:
    return {"success": False, "message": message}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 ``HTTPException`` 转换为统一响应格式。"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # pragma: no cover - framework glue
    """请求体验证失败时返回 400，并指出第一个出错的字段。"""
    errors = exc.errors()
    message = "Request validation failed"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        if location:
            message = f"Invalid or missing field: {location}"
    return JSONResponse(status_code=HTTP_STATUS_BAD_REQUEST, content=_error_payload(message))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：记录带错误编号的日志，对外只返回通用 500 响应。"""
    error_id = secrets.token_hex(4)
    logger.error(
        "Unhandled error [%s] on %s %s",
        error_id,
        request.method,
        request.url.path,
        exc_info=exc,
        extra={"error_id": error_id},
    )
    return JSONResponse(status_code=HTTP_STATUS_INTERNAL_ERROR, content=_error_payload("Internal server error"))
