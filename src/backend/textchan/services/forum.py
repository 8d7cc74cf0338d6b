from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any

from textchan.core.config import Settings
from textchan.services.broadcaster import THREAD_ADDED, THREAD_MODIFIED, ThreadBroadcaster
from textchan.services.errors import ForumError, PolicyViolation, StorageUnavailable, ThreadNotFound, ValidationError
from textchan.services.posting_policy import PostingPolicy
from textchan.storage import ForumBackend, ReplyRecord, StorageStatus, ThreadRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForumStatus:
    posting_enabled: bool
    next_change_timestamp: dt.datetime
    current_timestamp: dt.datetime
    storage: StorageStatus
    timezone: str = "UTC"


@dataclass(frozen=True)
class ThreadWithReplies:
    thread: ThreadRecord
    replies: list[ReplyRecord]


class ForumService:
    """Validate, gate and persist posts; owns the backend connection."""

    def __init__(
        self,
        backend: ForumBackend,
        policy: PostingPolicy,
        broadcaster: ThreadBroadcaster | None = None,
        max_body_length: int = 2000,
    ) -> None:
        self.backend = backend
        self.policy = policy
        self.broadcaster = broadcaster or ThreadBroadcaster()
        self.max_body_length = max_body_length

    @classmethod
    def from_settings(cls, settings: Settings, backend: ForumBackend) -> "ForumService":
        return cls(
            backend=backend,
            policy=PostingPolicy(allow_weekday_posting=settings.allow_weekday_posting),
            max_body_length=settings.max_body_length,
        )

    def status(self) -> ForumStatus:
        now = self.policy.now()
        try:
            storage = self.backend.check_storage_limit()
        except ForumError as exc:
            logger.error("Error fetching storage status: %s", exc)
            storage = StorageStatus.unknown(self.backend.max_size)
        return ForumStatus(
            posting_enabled=self.policy.is_posting_allowed(now),
            next_change_timestamp=self.policy.next_change_timestamp(now),
            current_timestamp=now,
            storage=storage,
        )

    def list_threads(self) -> list[ThreadRecord]:
        return self.backend.get_all_threads()

    def get_thread(self, thread_id: int) -> ThreadWithReplies:
        thread = self.backend.get_thread_by_id(thread_id)
        if thread is None:
            raise ThreadNotFound()
        return ThreadWithReplies(thread=thread, replies=self.backend.get_replies_by_thread_id(thread_id))

    def create_thread(self, body: Any, user_id: Any) -> ThreadRecord:
        clean_body, clean_user = self._validate_post(body, user_id)
        thread = self.backend.create_thread(clean_body, clean_user, self.policy.now())
        logger.info("Thread %s created by %s", thread.id, clean_user)
        self.broadcaster.publish(THREAD_ADDED, thread)
        return thread

    def create_reply(self, thread_id: int, body: Any, user_id: Any) -> ReplyRecord:
        clean_body, clean_user = self._validate_post(body, user_id)
        reply = self.backend.create_reply(thread_id, clean_body, clean_user, self.policy.now())
        logger.info("Reply %s added to thread %s by %s", reply.id, thread_id, clean_user)
        self._publish_modified(thread_id)
        return reply

    def close(self) -> None:
        self.backend.close()

    def _validate_post(self, body: Any, user_id: Any) -> tuple[str, str]:
        if not self.policy.is_posting_allowed():
            raise PolicyViolation()

        clean_body = body.strip() if isinstance(body, str) else ""
        if not clean_body:
            raise ValidationError("Body is required")

        clean_user = user_id.strip() if isinstance(user_id, str) else ""
        if not clean_user:
            raise ValidationError("User ID is required")

        if len(clean_body) > self.max_body_length:
            raise ValidationError(f"Body too long (max {self.max_body_length} characters)")

        return clean_body, clean_user

    def _publish_modified(self, thread_id: int) -> None:
        # The reply is already stored; a failed re-read only costs the stream update.
        try:
            thread = self.backend.get_thread_by_id(thread_id)
        except StorageUnavailable as exc:
            logger.warning("Could not reload thread %s for stream update: %s", thread_id, exc)
            return
        if thread is not None:
            self.broadcaster.publish(THREAD_MODIFIED, thread)
