"""认证服务：封装注册、登录流程。"""

from sqlalchemy.orm import Session

from app.packages.filevault.core.constants import (
    ACCESS_TOKEN_TYPE,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_UNAUTHORIZED,
)
from app.packages.filevault.core.exceptions import AppException
from app.packages.filevault.core.logger import logger
from app.packages.filevault.core.responses import create_response
from app.packages.filevault.core.security import create_access_token, get_password_hash, verify_password
from app.packages.filevault.crud.users import user_crud


class AuthService:
    """负责处理用户注册与登录流程。"""

    def register_user(self, db: Session, *, email: str, password: str) -> dict:
        normalized = email.strip().lower()
        if user_crud.get_by_email(db, normalized):
            raise AppException("User already exists", HTTP_STATUS_CONFLICT)

        user = user_crud.create(
            db,
            {"email": normalized, "hashed_password": get_password_hash(password)},
        )
        logger.info("Registered user %s", user.id)
        return create_response("User registered successfully", {"user_id": user.id, "email": user.email})

    def login(self, db: Session, *, email: str, password: str) -> dict:
        """校验用户凭证并签发访问令牌。"""
        user = user_crud.get_by_email(db, email)
        if user is None or not verify_password(password, user.hashed_password):
            raise AppException("Invalid email or password", HTTP_STATUS_UNAUTHORIZED)

        access_token = create_access_token(user.id, user.email)
        return create_response(
            "Login successful",
            {"access_token": access_token, "token_type": ACCESS_TOKEN_TYPE},
        )


auth_service = AuthService()
