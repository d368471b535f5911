"""文件访问控制：匿名凭证校验与登录用户归属校验。

两类解析器都返回 ``FileHandle`` 或 ``DENIED``，而不是抛异常：
- 匿名访问：``(file_id, secret_key)`` 是持有即授权的凭证，不校验身份；
- 登录访问：调用者必须是文件归属人，只读操作额外允许 ``is_public`` 的文件。
无论记录不存在、凭证不符还是他人文件，结果都是同一个 ``DENIED``。
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from app.packages.filevault.crud.file_record import anonymous_file_crud, owned_file_crud
from app.packages.filevault.models.file_record import AnonymousFile, OwnedFile

FILE_ID_BYTES = 5
SECRET_KEY_BYTES = 16
ACCESS_TOKEN_BYTES = 16
# BIGINT 上限，超出的 ID 不可能存在
MAX_OWNED_ID = 2**63 - 1


@dataclass(frozen=True)
class FileHandle:
    """解析成功后交给业务层的文件快照。"""

    file_id: Union[int, str]
    storage_key: str
    filename: str
    content_type: Optional[str]
    byte_size: int
    owner_user_id: Optional[int] = None
    is_public: bool = False
    access_token: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_anonymous(cls, row: AnonymousFile) -> "FileHandle":
        return cls(
            file_id=row.file_id,
            storage_key=row.storage_key,
            filename=row.original_filename,
            content_type=row.content_type,
            byte_size=int(row.byte_size or 0),
            created_at=row.create_time,
        )

    @classmethod
    def from_owned(cls, row: OwnedFile) -> "FileHandle":
        return cls(
            file_id=row.id,
            storage_key=row.storage_key,
            filename=row.filename,
            content_type=row.content_type,
            byte_size=int(row.byte_size or 0),
            owner_user_id=row.owner_user_id,
            is_public=bool(row.is_public),
            access_token=row.access_token,
            created_at=row.create_time,
        )


class Denied:
    """拒绝访问的统一结果，不携带任何原因。"""

    _instance: Optional["Denied"] = None

    def __new__(cls) -> "Denied":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "DENIED"


DENIED = Denied()

Resolution = Union[FileHandle, Denied]


def new_file_id() -> str:
    """10 位十六进制的匿名文件 ID。"""
    return secrets.token_hex(FILE_ID_BYTES)


def new_secret_key() -> str:
    """32 位十六进制的匿名访问密钥（16 字节熵）。"""
    return secrets.token_hex(SECRET_KEY_BYTES)


def new_access_token() -> str:
    return secrets.token_hex(ACCESS_TOKEN_BYTES)


def parse_owned_id(raw: Any) -> Optional[int]:
    """把路径参数转为正整数 ID，非法输入返回 ``None``。"""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw or "").strip()
        # isdigit() 对上标等字符也为真，int() 却无法解析，只接受 ASCII 十进制
        if not (text.isascii() and text.isdecimal()):
            return None
        value = int(text)
    return value if 0 < value <= MAX_OWNED_ID else None


class CapabilityResolver:
    def resolve(self, db: Session, file_id: Optional[str], secret_key: Optional[str]) -> Resolution:
        if not file_id or not secret_key:
            return DENIED
        row = anonymous_file_crud.find_anonymous(db, str(file_id), str(secret_key))
        if row is None:
            return DENIED
        return FileHandle.from_anonymous(row)


class OwnershipResolver:
    def _load(self, db: Session, file_id: Any) -> Optional[OwnedFile]:
        owned_id = parse_owned_id(file_id)
        if owned_id is None:
            return None
        return owned_file_crud.find_owned_by_id(db, owned_id)

    def resolve_for_read(self, db: Session, file_id: Any, user_id: int) -> Resolution:
        row = self._load(db, file_id)
        if row is None:
            return DENIED
        if row.owner_user_id != user_id and not row.is_public:
            return DENIED
        return FileHandle.from_owned(row)

    def resolve_for_write(self, db: Session, file_id: Any, user_id: int) -> Resolution:
        # 写、删除、分享一律要求本人，公开状态不授予写权限
        row = self._load(db, file_id)
        if row is None or row.owner_user_id != user_id:
            return DENIED
        return FileHandle.from_owned(row)

    def resolve_shared(self, db: Session, access_token: Optional[str]) -> Resolution:
        if not access_token:
            return DENIED
        row = owned_file_crud.find_by_access_token(db, str(access_token))
        if row is None:
            return DENIED
        return FileHandle.from_owned(row)

    def mint(self, db: Session, file_id: Any, user_id: int) -> Union[str, Denied]:
        """签发新的分享令牌（每次调用都会轮换），``is_public`` 与令牌在同一条语句中写入。"""
        handle = self.resolve_for_write(db, file_id, user_id)
        if isinstance(handle, Denied):
            return DENIED
        token = new_access_token()
        affected = owned_file_crud.mark_public(db, int(handle.file_id), user_id, token)
        if affected == 0:
            # 并发删除
            return DENIED
        return token


capability_resolver = CapabilityResolver()
ownership_resolver = OwnershipResolver()
