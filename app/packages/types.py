"""业务包元数据定义：主应用只通过这里声明的入口与业务包交互。"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import Logger
from typing import Any, Awaitable, Callable, Dict, Type

from fastapi import APIRouter, FastAPI

ExceptionHandler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class AppPackage:
    """业务包暴露给主应用的路由、配置、日志、生命周期钩子与异常处理器。"""

    name: str
    api_router: APIRouter
    get_settings: Callable[[], Any]
    setup_logging: Callable[[], None]
    logger: Logger
    create_response: Callable[..., dict]
    # 启动钩子负责把运行期资源（如存储后端）挂到 app.state 上
    on_startup: Callable[[FastAPI], None]
    on_shutdown: Callable[[FastAPI], None]
    exception_handlers: Dict[Type[BaseException], ExceptionHandler] = field(default_factory=dict)
