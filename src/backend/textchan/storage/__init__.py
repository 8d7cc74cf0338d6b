"""
Persistence backends for threads and replies.
"""

from __future__ import annotations

from textchan.core.config import Settings
from textchan.db.session import create_db_engine, create_session_factory, create_tables

from .document import DocumentForumBackend
from .protocol import ForumBackend
from .sql import SqlForumBackend
from .types import ReplyRecord, StorageStatus, ThreadRecord

__all__ = [
    "DocumentForumBackend",
    "ForumBackend",
    "ReplyRecord",
    "SqlForumBackend",
    "StorageStatus",
    "ThreadRecord",
    "build_backend",
]


def build_backend(settings: Settings) -> ForumBackend:
    if settings.storage_backend == "document":
        return DocumentForumBackend(
            max_size=settings.storage_limit_bytes,
            threshold=settings.storage_warning_threshold,
        )

    engine = create_db_engine(settings)
    if settings.is_sqlite:
        create_tables(engine)
    return SqlForumBackend(
        create_session_factory(engine),
        max_size=settings.storage_limit_bytes,
        threshold=settings.storage_warning_threshold,
        engine=engine,
    )
