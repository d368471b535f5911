"""存储配额服务：统计用户已用空间、文件数与类型分布。

用量每次调用都重新汇总 ``owned_files.byte_size``，不做缓存。
配额默认只用于展示；开启 ``QUOTA_ENFORCED`` 后上传前会校验剩余空间。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.packages.filevault.core.config import get_settings
from app.packages.filevault.core.constants import DOCUMENT_CONTENT_TYPES, MB
from app.packages.filevault.core.exceptions import QuotaExceeded
from app.packages.filevault.core.logger import logger
from app.packages.filevault.models.file_record import OwnedFile

RECENT_ACTIVITY_DAYS = 7


def recent_cutoff(dialect_name: str, now: Optional[datetime] = None) -> datetime:
    """近 7 天统计的起点。

    SQLite 把 ``CURRENT_TIMESTAMP`` 存成无时区的 UTC 文本，比较时也要用无时区值；
    其它方言（PostgreSQL 的 timestamptz）使用带时区的 UTC，避免按会话时区解释。
    """
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=RECENT_ACTIVITY_DAYS)
    if dialect_name == "sqlite":
        return cutoff.replace(tzinfo=None)
    return cutoff


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class StorageUsage:
    used_bytes: int
    limit_bytes: int

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.limit_bytes - self.used_bytes)

    @property
    def used_mb(self) -> int:
        return _round_half_up(self.used_bytes / MB)

    @property
    def limit_mb(self) -> int:
        return _round_half_up(self.limit_bytes / MB)

    @property
    def percentage_used(self) -> int:
        if self.limit_bytes <= 0:
            return 0
        return _round_half_up(self.used_bytes / self.limit_bytes * 100)

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_storage_used": self.used_bytes,
            "storage_limit": self.limit_bytes,
            "storage_used_mb": self.used_mb,
            "storage_limit_mb": self.limit_mb,
            "percentage_used": self.percentage_used,
            "remaining_storage": self.remaining_bytes,
        }


class QuotaService:
    def __init__(self, limit_bytes: Optional[int] = None, enforced: Optional[bool] = None):
        self._limit_bytes = limit_bytes
        self._enforced = enforced

    @property
    def limit_bytes(self) -> int:
        if self._limit_bytes is not None:
            return self._limit_bytes
        return get_settings().storage_limit_bytes

    @property
    def enforced(self) -> bool:
        if self._enforced is not None:
            return self._enforced
        return get_settings().quota_enforced

    def usage(self, db: Session, user_id: int) -> StorageUsage:
        used = (
            db.query(func.coalesce(func.sum(OwnedFile.byte_size), 0))
            .filter(OwnedFile.owner_user_id == user_id)
            .scalar()
        )
        return StorageUsage(used_bytes=int(used or 0), limit_bytes=self.limit_bytes)

    def file_count(self, db: Session, user_id: int) -> int:
        total = db.query(func.count(OwnedFile.id)).filter(OwnedFile.owner_user_id == user_id).scalar()
        return int(total or 0)

    def ensure_capacity(self, db: Session, user_id: int, incoming_bytes: int) -> None:
        if not self.enforced:
            return
        usage = self.usage(db, user_id)
        if usage.used_bytes + int(incoming_bytes) > usage.limit_bytes:
            logger.warning(
                "Quota exceeded for user %s: used=%s incoming=%s limit=%s",
                user_id,
                usage.used_bytes,
                incoming_bytes,
                usage.limit_bytes,
            )
            raise QuotaExceeded()

    def type_breakdown(self, db: Session, user_id: int) -> List[Dict[str, Any]]:
        category = case(
            (OwnedFile.content_type.like("image/%"), "Images"),
            (OwnedFile.content_type.like("video/%"), "Videos"),
            (OwnedFile.content_type.like("audio/%"), "Audio"),
            (OwnedFile.content_type.in_(DOCUMENT_CONTENT_TYPES), "Documents"),
            (OwnedFile.content_type.like("application/%"), "Applications"),
            else_="Other",
        ).label("category")
        size = func.coalesce(func.sum(OwnedFile.byte_size), 0).label("size")
        rows = (
            db.query(category, func.count(OwnedFile.id).label("count"), size)
            .filter(OwnedFile.owner_user_id == user_id)
            .group_by(category)
            .order_by(size.desc())
            .all()
        )
        return [
            {
                "category": row.category,
                "count": int(row.count),
                "size": int(row.size),
                "size_mb": _round_half_up(int(row.size) / MB),
            }
            for row in rows
        ]

    def stats(self, db: Session, user_id: int) -> Dict[str, Any]:
        usage = self.usage(db, user_id)
        since = recent_cutoff(db.get_bind().dialect.name)
        recent = (
            db.query(func.count(OwnedFile.id))
            .filter(OwnedFile.owner_user_id == user_id, OwnedFile.create_time >= since)
            .scalar()
        )
        public_files = (
            db.query(func.count(OwnedFile.id))
            .filter(OwnedFile.owner_user_id == user_id, OwnedFile.is_public.is_(True))
            .scalar()
        )
        overview = {"total_files": self.file_count(db, user_id), **usage.to_dict()}
        return {
            "overview": overview,
            "file_types": self.type_breakdown(db, user_id),
            "activity": {
                "recent_uploads_7d": int(recent or 0),
                "public_files": int(public_files or 0),
            },
        }


quota_service = QuotaService()
