"""文件存储业务包：匿名凭证文件、用户文件、分享与配额。"""

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError

from app.packages.types import AppPackage

from .api.v1 import api_router
from .core.config import get_settings
from .core.exceptions import generic_exception_handler, http_exception_handler, validation_exception_handler
from .core.lifecycle import on_shutdown, on_startup
from .core.logger import logger, setup_logging
from .core.responses import create_response

package = AppPackage(
    name="filevault",
    api_router=api_router,
    get_settings=get_settings,
    setup_logging=setup_logging,
    logger=logger,
    create_response=create_response,
    on_startup=on_startup,
    on_shutdown=on_shutdown,
    exception_handlers={
        HTTPException: http_exception_handler,
        RequestValidationError: validation_exception_handler,
        Exception: generic_exception_handler,
    },
)

__all__ = ["package", "api_router", "get_settings"]
