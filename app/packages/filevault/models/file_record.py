"""文件元数据模型：匿名文件与用户文件两张表。

说明：
- ``anonymous_files`` 通过 ``file_id`` + ``secret_key`` 凭证访问，无归属用户，创建后不可修改；
- ``owned_files`` 以自增 ``id`` 作为对外文件 ID，归属唯一用户，``storage_key`` 形如
  ``user-{owner_user_id}/{random}-{filename}``；
- ``is_public`` 与 ``access_token`` 成对出现，由 CHECK 约束兜底。
"""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.filevault.models.base import Base, TimestampMixin


class AnonymousFile(TimestampMixin, Base):
    __tablename__ = "anonymous_files"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    file_id: Mapped[str] = mapped_column(String(10), unique=True, index=True)
    secret_key: Mapped[str] = mapped_column(String(32))
    storage_key: Mapped[str] = mapped_column(String(1024), unique=True)
    original_filename: Mapped[str] = mapped_column(String(255))
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    byte_size: Mapped[int] = mapped_column(BigInteger, default=0)
    storage_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)


class OwnedFile(TimestampMixin, Base):
    __tablename__ = "owned_files"
    __table_args__ = (
        CheckConstraint(
            "(is_public AND access_token IS NOT NULL) OR (NOT is_public AND access_token IS NULL)",
            name="public_token_pairing",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_user_id: Mapped[int] = mapped_column(Integer, index=True)
    filename: Mapped[str] = mapped_column(String(255))
    storage_key: Mapped[str] = mapped_column(String(1024), unique=True)
    byte_size: Mapped[int] = mapped_column(BigInteger, default=0)
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())
    access_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
