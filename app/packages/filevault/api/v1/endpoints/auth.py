"""认证相关路由定义。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.filevault.api.v1.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from app.packages.filevault.core.constants import HTTP_STATUS_CREATED
from app.packages.filevault.core.dependencies import get_db
from app.packages.filevault.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=HTTP_STATUS_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    return auth_service.register_user(db, email=payload.email, password=payload.password)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """校验凭证并签发访问令牌。"""
    return auth_service.login(db, email=payload.email, password=payload.password)
