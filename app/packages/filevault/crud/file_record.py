"""文件记录 CRUD：匿名文件与用户文件的元数据存取。

所有查询都通过 ORM 表达式绑定参数，不拼接任何用户输入。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from app.packages.filevault.crud.base import CRUDBase
from app.packages.filevault.models.file_record import AnonymousFile, OwnedFile


class CRUDAnonymousFile(CRUDBase[AnonymousFile]):
    def insert_anonymous(self, db: Session, data: Dict[str, Any]) -> AnonymousFile:
        return self.create(db, data)

    def file_id_exists(self, db: Session, file_id: str) -> bool:
        return self.query(db).filter(AnonymousFile.file_id == file_id).first() is not None

    def find_anonymous(self, db: Session, file_id: str, secret_key: str) -> Optional[AnonymousFile]:
        """单条语句同时匹配两项凭证，任一不符均返回 ``None``。"""
        return (
            self.query(db)
            .filter(AnonymousFile.file_id == file_id, AnonymousFile.secret_key == secret_key)
            .first()
        )


class CRUDOwnedFile(CRUDBase[OwnedFile]):
    def insert_owned(self, db: Session, data: Dict[str, Any]) -> OwnedFile:
        return self.create(db, data)

    def find_owned_by_id(self, db: Session, id: int) -> Optional[OwnedFile]:
        return self.get(db, id)

    def find_by_access_token(self, db: Session, access_token: str) -> Optional[OwnedFile]:
        return (
            self.query(db)
            .filter(OwnedFile.access_token == access_token, OwnedFile.is_public.is_(True))
            .first()
        )

    def list_owned_by_user(self, db: Session, user_id: int) -> List[OwnedFile]:
        return (
            self.query(db)
            .filter(OwnedFile.owner_user_id == user_id)
            .order_by(OwnedFile.create_time.desc(), OwnedFile.id.desc())
            .all()
        )

    def delete_owned(self, db: Session, id: int, user_id: int) -> int:
        """按“ID + 归属人”删除，非本人调用影响 0 行。"""
        stmt = delete(OwnedFile).where(OwnedFile.id == id, OwnedFile.owner_user_id == user_id)
        return self.execute_write(db, stmt)

    def mark_public(self, db: Session, id: int, user_id: int, access_token: str) -> int:
        """同一条 UPDATE 同时写入 ``is_public`` 与 ``access_token``。"""
        stmt = (
            update(OwnedFile)
            .where(OwnedFile.id == id, OwnedFile.owner_user_id == user_id)
            .values(is_public=True, access_token=access_token)
            .execution_options(synchronize_session="fetch")
        )
        return self.execute_write(db, stmt)


anonymous_file_crud = CRUDAnonymousFile(AnonymousFile)
owned_file_crud = CRUDOwnedFile(OwnedFile)
