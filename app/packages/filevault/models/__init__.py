"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.filevault.models.file_record import AnonymousFile, OwnedFile
from app.packages.filevault.models.user import User

__all__ = [
    "AnonymousFile",
    "OwnedFile",
    "User",
]
