"""日志配置模块：统一控制台/文件输出格式，并把请求 ID 带进每一条日志。

对象存储相关日志会附带 ``storage_key``（通过 ``extra`` 传入），JSON 模式下作为独立字段输出，
便于按对象检索孤儿文件或删除失败的记录。
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

# 额外输出到 JSON 日志中的 extra 字段
STRUCTURED_FIELDS = ("storage_key", "file_id", "user_id", "error_id")

# 与 app 日志共用 handler 的第三方 logger
MANAGED_LOGGERS = ("app", "uvicorn", "uvicorn.access", "uvicorn.error")

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class _TZFormatter(logging.Formatter):
    """按 ``Settings.timezone`` 渲染时间戳。"""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        moment = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return moment.strftime(datefmt)
        return moment.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """按日志级别着色，仅在终端输出时启用。"""

    RESET = "\033[0m"
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: Optional[bool] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{message}{self.RESET}" if color else message


class JsonFormatter(_TZFormatter):
    """单行 JSON 日志，便于采集端解析。"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record),
            "logger": record.name,
            "level": record.levelname,
            "request_id": getattr(record, "request_id", None),
            "msg": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get() or "-"
        return True


def _build_config(settings: Settings) -> Dict[str, Any]:
    handler_names = ["console", "file"]
    module = __name__
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": f"{module}.RequestIdFilter"}},
        "formatters": {
            "console": {"()": f"{module}.ColorFormatter", "fmt": LOG_FORMAT},
            "plain": {"()": f"{module}._TZFormatter", "fmt": LOG_FORMAT},
            "json": {"()": f"{module}.JsonFormatter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "json" if settings.log_json else "console",
                "filters": ["request_id"],
            },
            # 按天切分，保留两周
            "file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "level": settings.log_level,
                "formatter": "json" if settings.log_json else "plain",
                "filename": str(settings.log_file_path),
                "when": "midnight",
                "backupCount": 14,
                "encoding": "utf-8",
                "delay": True,
                "filters": ["request_id"],
            },
        },
        "loggers": {
            name: {"handlers": handler_names, "level": settings.log_level, "propagate": False}
            for name in MANAGED_LOGGERS
        },
        "root": {"handlers": handler_names, "level": settings.log_level},
    }


def setup_logging() -> None:
    """初始化日志系统；日志目录不存在时自动创建。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(_build_config(settings))


logger = logging.getLogger("app")


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()
