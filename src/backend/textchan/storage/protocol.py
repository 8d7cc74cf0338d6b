"""Persistence backend protocol shared by the SQL and document stores."""

from __future__ import annotations

import abc
import datetime as dt

from .types import ReplyRecord, StorageStatus, ThreadRecord


class ForumBackend(abc.ABC):
    """Durable storage and ordered retrieval of threads and their replies.

    Implementations raise `StorageLimitExceeded` from the write methods when
    the capacity check trips, `ThreadNotFound` when a reply targets a missing
    thread, and wrap any other store failure in `StorageUnavailable`.
    """

    max_size: int
    threshold: float

    @abc.abstractmethod
    def create_thread(self, body: str, user_id: str, created_at: dt.datetime) -> ThreadRecord:
        """Insert a thread and return it with an empty reply set."""

    @abc.abstractmethod
    def get_all_threads(self) -> list[ThreadRecord]:
        """Return every thread, newest first, each carrying its reply count."""

    @abc.abstractmethod
    def get_thread_by_id(self, thread_id: int) -> ThreadRecord | None:
        ...

    @abc.abstractmethod
    def get_replies_by_thread_id(self, thread_id: int) -> list[ReplyRecord]:
        """Return the replies of a thread, oldest first."""

    @abc.abstractmethod
    def create_reply(self, thread_id: int, body: str, user_id: str, created_at: dt.datetime) -> ReplyRecord:
        ...

    @abc.abstractmethod
    def check_storage_limit(self) -> StorageStatus:
        ...

    def ping(self) -> None:
        """Raise `StorageUnavailable` if the store cannot be reached."""

    def close(self) -> None:
        """Release the underlying connection, if any."""
