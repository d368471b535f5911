"""应用生命周期钩子：启动时建表并选定存储后端，关闭时释放后端连接。"""

from fastapi import FastAPI

from app.packages.filevault.core.config import get_settings
from app.packages.filevault.core.logger import logger
from app.packages.filevault.db.init_db import init_db
from app.packages.filevault.services.storage_backends import build_object_store


def on_startup(app: FastAPI) -> None:
    """存储配置不合法时抛出异常，服务直接启动失败。"""
    settings = get_settings()
    init_db()
    app.state.object_store = build_object_store(settings)
    logger.info(
        "SUCCESS - Application running at http://127.0.0.1:%s (storage=%s)",
        settings.app_port,
        app.state.object_store.name,
    )


def on_shutdown(app: FastAPI) -> None:
    store = getattr(app.state, "object_store", None)
    if store is None:
        return
    store.close()
    app.state.object_store = None
    logger.info("Object store %s closed", store.name)
