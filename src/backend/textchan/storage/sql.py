from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, Select, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from textchan.models import Reply, Thread
from textchan.services.errors import StorageLimitExceeded, StorageUnavailable, ThreadNotFound

from .protocol import ForumBackend
from .types import ReplyRecord, StorageStatus, ThreadRecord, as_utc

logger = logging.getLogger(__name__)


def _thread_record(thread: Thread, reply_count: int) -> ThreadRecord:
    return ThreadRecord(
        id=thread.id,
        body=thread.body,
        user_id=thread.user_id,
        created_at=as_utc(thread.created_at),
        reply_count=reply_count,
    )


def _reply_record(reply: Reply) -> ReplyRecord:
    return ReplyRecord(
        id=reply.id,
        thread_id=reply.thread_id,
        body=reply.body,
        user_id=reply.user_id,
        created_at=as_utc(reply.created_at),
    )


class SqlForumBackend(ForumBackend):
    """Relational store over SQLAlchemy; `threads` and `replies` joined by `thread_id`.

    Capacity is measured with a single aggregate over the stored text columns
    instead of re-reading every row, so the check stays one query per write.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        max_size: int,
        threshold: float,
        engine: Engine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine
        self.max_size = max_size
        self.threshold = threshold

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database error during %s: %s", operation, exc)
            raise StorageUnavailable(f"Failed to {operation}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _reply_counts(self) -> Select[tuple[Thread, int]]:
        reply_count = func.count(Reply.id).label("reply_count")
        return (
            select(Thread, reply_count)
            .outerjoin(Reply, Reply.thread_id == Thread.id)
            .group_by(Thread.id)
        )

    def _used_bytes(self, session: Session) -> int:
        thread_size = select(
            func.coalesce(func.sum(func.length(Thread.body) + func.length(Thread.user_id)), 0)
        )
        reply_size = select(
            func.coalesce(func.sum(func.length(Reply.body) + func.length(Reply.user_id)), 0)
        )
        return int(session.execute(thread_size).scalar_one()) + int(session.execute(reply_size).scalar_one())

    def _ensure_capacity(self, session: Session) -> None:
        status = StorageStatus.measure(self._used_bytes(session), self.max_size, self.threshold)
        if status.limit_reached:
            logger.warning("Rejecting write: storage at %.2f%% of %s bytes", status.usage_percent, status.max_size)
            raise StorageLimitExceeded()

    def create_thread(self, body: str, user_id: str, created_at: dt.datetime) -> ThreadRecord:
        with self._session("create thread") as session:
            self._ensure_capacity(session)
            thread = Thread(body=body, user_id=user_id, created_at=as_utc(created_at))
            session.add(thread)
            session.flush()
            return _thread_record(thread, 0)

    def get_all_threads(self) -> list[ThreadRecord]:
        stmt = self._reply_counts().order_by(Thread.created_at.desc(), Thread.id.desc())
        with self._session("fetch threads") as session:
            return [_thread_record(thread, count) for thread, count in session.execute(stmt).all()]

    def get_thread_by_id(self, thread_id: int) -> ThreadRecord | None:
        stmt = self._reply_counts().where(Thread.id == thread_id)
        with self._session("fetch thread") as session:
            row = session.execute(stmt).first()
            if row is None:
                return None
            thread, count = row
            return _thread_record(thread, count)

    def get_replies_by_thread_id(self, thread_id: int) -> list[ReplyRecord]:
        stmt = (
            select(Reply)
            .where(Reply.thread_id == thread_id)
            .order_by(Reply.created_at.asc(), Reply.id.asc())
        )
        with self._session("fetch replies") as session:
            return [_reply_record(reply) for reply in session.execute(stmt).scalars()]

    def create_reply(self, thread_id: int, body: str, user_id: str, created_at: dt.datetime) -> ReplyRecord:
        with self._session("create reply") as session:
            self._ensure_capacity(session)
            if session.get(Thread, thread_id) is None:
                raise ThreadNotFound()
            reply = Reply(thread_id=thread_id, body=body, user_id=user_id, created_at=as_utc(created_at))
            session.add(reply)
            session.flush()
            return _reply_record(reply)

    def check_storage_limit(self) -> StorageStatus:
        with self._session("check storage") as session:
            status = StorageStatus.measure(self._used_bytes(session), self.max_size, self.threshold)
        logger.debug(
            "Storage usage: %.2f MB (%.2f%%)", status.current_size / 1024 / 1024, status.usage_percent
        )
        return status

    def ping(self) -> None:
        with self._session("reach database") as session:
            session.execute(text("SELECT 1"))

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
