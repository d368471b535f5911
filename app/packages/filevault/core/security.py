"""安全模块：密码哈希（bcrypt）与访问令牌（JWT, HS256）。

令牌只承载 ``user_id`` 与 ``email``，不携带任何文件级权限；文件访问一律在请求时查库判定。
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from .config import get_settings
from .logger import logger


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """哈希缺失或格式非法时视为校验失败。"""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(user_id: int, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """签发登录令牌，默认有效期取 ``ACCESS_TOKEN_EXPIRE_MINUTES``。"""
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"user_id": user_id, "email": email, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """校验签名与过期时间，非法令牌返回 ``None``。"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError as exc:
        logger.warning("Failed to decode JWT: %s", exc)
        return None


def token_user_id(token: str) -> Optional[int]:
    payload = decode_token(token)
    if payload is None:
        return None
    try:
        return int(payload["user_id"])
    except (KeyError, TypeError, ValueError):
        return None
