"""用户 CRUD：集中管理用户相关的数据操作。"""

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.filevault.crud.base import CRUDBase
from app.packages.filevault.models.user import User


class CRUDUser(CRUDBase[User]):
    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """根据唯一邮箱获取用户实例（大小写不敏感）。"""
        return self.query(db).filter(User.email == email.strip().lower()).first()


user_crud = CRUDUser(User)
