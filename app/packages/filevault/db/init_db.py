"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from app.packages.filevault.db import session as db_session
from app.packages.filevault.models.base import Base
from app.packages.filevault import models  # noqa: F401 - register tables before create_all

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist."""
    try:
        Base.metadata.create_all(bind=db_session.engine)
    except Exception:  # pragma: no cover - startup failures are fatal
        logger.exception("Failed to create database tables")
        raise
