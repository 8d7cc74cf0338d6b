from __future__ import annotations

import datetime as dt
import json
import logging
import threading
from typing import Any

from textchan.services.errors import StorageLimitExceeded, ThreadNotFound

from .protocol import ForumBackend
from .types import ReplyRecord, StorageStatus, ThreadRecord, as_utc

logger = logging.getLogger(__name__)


class DocumentForumBackend(ForumBackend):
    """In-process document tree laid out as ``threads/{id}/replies/{id}``.

    The capacity check serialises the whole tree on every write, which is
    O(total data size). Fine for a small forum or tests, not for large data.
    """

    def __init__(self, *, max_size: int, threshold: float) -> None:
        self.max_size = max_size
        self.threshold = threshold
        self._root: dict[str, Any] = {"threads": {}}
        self._next_thread_id = 1
        self._next_reply_id = 1
        self._lock = threading.RLock()

    def _threads(self) -> dict[str, dict[str, Any]]:
        return self._root["threads"]

    def _measure(self) -> StorageStatus:
        data_size = len(json.dumps(self._root, separators=(",", ":")))
        return StorageStatus.measure(data_size, self.max_size, self.threshold)

    def check_storage_limit(self) -> StorageStatus:
        with self._lock:
            status = self._measure()
        logger.debug(
            "Storage usage: %.2f MB (%.2f%%)", status.current_size / 1024 / 1024, status.usage_percent
        )
        return status

    def _ensure_capacity(self) -> None:
        status = self._measure()
        if status.limit_reached:
            logger.warning("Rejecting write: storage at %.2f%% of %s bytes", status.usage_percent, status.max_size)
            raise StorageLimitExceeded()

    @staticmethod
    def _thread_record(key: str, node: dict[str, Any]) -> ThreadRecord:
        return ThreadRecord(
            id=int(key),
            body=node["body"],
            user_id=node["userId"],
            created_at=dt.datetime.fromisoformat(node["createdAt"]),
            reply_count=len(node.get("replies", {})),
        )

    @staticmethod
    def _reply_record(thread_key: str, key: str, node: dict[str, Any]) -> ReplyRecord:
        return ReplyRecord(
            id=int(key),
            thread_id=int(thread_key),
            body=node["body"],
            user_id=node["userId"],
            created_at=dt.datetime.fromisoformat(node["createdAt"]),
        )

    def create_thread(self, body: str, user_id: str, created_at: dt.datetime) -> ThreadRecord:
        with self._lock:
            self._ensure_capacity()
            key = str(self._next_thread_id)
            self._next_thread_id += 1
            node = {"body": body, "userId": user_id, "createdAt": as_utc(created_at).isoformat()}
            self._threads()[key] = node
            return self._thread_record(key, node)

    def get_all_threads(self) -> list[ThreadRecord]:
        with self._lock:
            threads = [self._thread_record(key, node) for key, node in self._threads().items()]
        threads.sort(key=lambda thread: (thread.created_at, thread.id), reverse=True)
        return threads

    def get_thread_by_id(self, thread_id: int) -> ThreadRecord | None:
        with self._lock:
            node = self._threads().get(str(thread_id))
            if node is None:
                return None
            return self._thread_record(str(thread_id), node)

    def get_replies_by_thread_id(self, thread_id: int) -> list[ReplyRecord]:
        thread_key = str(thread_id)
        with self._lock:
            node = self._threads().get(thread_key) or {}
            replies = [
                self._reply_record(thread_key, key, reply)
                for key, reply in node.get("replies", {}).items()
            ]
        replies.sort(key=lambda reply: (reply.created_at, reply.id))
        return replies

    def create_reply(self, thread_id: int, body: str, user_id: str, created_at: dt.datetime) -> ReplyRecord:
        thread_key = str(thread_id)
        with self._lock:
            self._ensure_capacity()
            thread = self._threads().get(thread_key)
            if thread is None:
                raise ThreadNotFound()
            key = str(self._next_reply_id)
            self._next_reply_id += 1
            node = {"body": body, "userId": user_id, "createdAt": as_utc(created_at).isoformat()}
            thread.setdefault("replies", {})[key] = node
            return self._reply_record(thread_key, key, node)
