from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field

from textchan.client.api import ApiError, TextchanClient
from textchan.schemas.reply import ReplyRead
from textchan.schemas.status import StatusResponse
from textchan.schemas.thread import ThreadRead
from textchan.services.broadcaster import THREAD_ADDED, THREAD_MODIFIED, THREAD_REMOVED

logger = logging.getLogger(__name__)

PREVIEW_LINES = 3


@dataclass(frozen=True)
class Toast:
    message: str
    level: str = "success"


def format_countdown(target: dt.datetime, now: dt.datetime) -> str | None:
    """Render the time left until `target` as e.g. ``1d 2h 3m 4s``; None once it has passed."""
    remaining = int((target - now).total_seconds())
    if remaining <= 0:
        return None
    days, remainder = divmod(remaining, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if hours or days:
        parts.append(f"{hours}h")
    if minutes or hours or days:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def format_age(created_at: dt.datetime, now: dt.datetime) -> str:
    minutes = int((now - created_at).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return created_at.date().isoformat()


@dataclass
class ForumView:
    """Client-side forum state: status, thread list, open reply panels and toasts.

    Background refreshes never collapse a panel the user opened; open panels
    are reloaded instead.
    """

    client: TextchanClient
    user_id: str
    max_body_length: int = 2000
    status: StatusResponse | None = None
    status_error: bool = False
    threads: list[ThreadRead] = field(default_factory=list)
    threads_error: str | None = None
    open_threads: set[int] = field(default_factory=set)
    replies: dict[int, list[ReplyRead]] = field(default_factory=dict)
    toasts: list[Toast] = field(default_factory=list)

    @property
    def storage_limit_reached(self) -> bool:
        return bool(self.status and self.status.storage.limit_reached)

    @property
    def can_post(self) -> bool:
        return bool(self.status and self.status.posting_enabled and not self.storage_limit_reached)

    def countdown_elapsed(self, now: dt.datetime | None = None) -> bool:
        """True once the posting window should have flipped; status is stale until refetched."""
        if self.status is None:
            return False
        now = now or dt.datetime.now(dt.timezone.utc)
        return format_countdown(self.status.next_change_timestamp, now) is None

    def toast(self, message: str, level: str = "success") -> None:
        self.toasts.append(Toast(message, level))

    def drain_toasts(self) -> list[Toast]:
        toasts, self.toasts = self.toasts, []
        return toasts

    def refresh_status(self) -> None:
        try:
            self.status = self.client.fetch_status()
            self.status_error = False
        except ApiError as exc:
            logger.error("Failed to fetch status: %s", exc)
            self.status_error = True

    def refresh_threads(self) -> None:
        try:
            threads = self.client.fetch_threads()
        except ApiError as exc:
            logger.error("Failed to fetch threads: %s", exc)
            self.threads_error = "Failed to load threads. Retrying..."
            return
        self.threads_error = None
        self._set_threads(threads)
        for thread_id in sorted(self.open_threads):
            self.load_replies(thread_id)

    def toggle(self, thread_id: int) -> None:
        if thread_id in self.open_threads:
            self.open_threads.discard(thread_id)
            return
        self.open_threads.add(thread_id)
        self.load_replies(thread_id)

    def load_replies(self, thread_id: int) -> None:
        try:
            data = self.client.fetch_replies(thread_id)
        except ApiError as exc:
            logger.error("Failed to fetch replies for thread %s: %s", thread_id, exc)
            self.toast("Failed to fetch replies", "error")
            self.open_threads.discard(thread_id)
            return
        self.replies[thread_id] = data.replies
        self._replace_thread(data.thread)

    def post_thread(self, content: str) -> bool:
        content = content.strip()
        if not self._check_content(content):
            return False
        try:
            self.client.post_thread(content, self.user_id)
        except ApiError as exc:
            self._report_post_failure(exc, "Failed to create thread")
            return False
        self.toast("Thread posted successfully!")
        self.refresh_threads()
        return True

    def post_reply(self, thread_id: int, content: str) -> bool:
        content = content.strip()
        if not self._check_content(content):
            return False
        try:
            self.client.post_reply(thread_id, content, self.user_id)
        except ApiError as exc:
            self._report_post_failure(exc, "Failed to post reply")
            return False
        self.toast("Reply posted!")
        self.open_threads.add(thread_id)
        self.load_replies(thread_id)
        return True

    def apply_event(self, name: str, thread: ThreadRead) -> None:
        """Fold a stream event into the thread list."""
        if name == THREAD_ADDED:
            if all(existing.id != thread.id for existing in self.threads):
                self._set_threads([thread, *self.threads])
                self.toast("New thread received")
        elif name == THREAD_MODIFIED:
            self._replace_thread(thread)
            if thread.id in self.open_threads:
                self.load_replies(thread.id)
        elif name == THREAD_REMOVED:
            self.threads = [existing for existing in self.threads if existing.id != thread.id]
            self.open_threads.discard(thread.id)
            self.replies.pop(thread.id, None)

    def render(self, now: dt.datetime | None = None) -> str:
        now = now or dt.datetime.now(dt.timezone.utc)
        lines = [self._render_banner(now), ""]
        if self.threads_error:
            lines.append(self.threads_error)
        elif not self.threads:
            lines.append("No threads yet. Be the first to post!")
        for thread in self.threads:
            lines.extend(self._render_thread(thread, now))
        return "\n".join(lines)

    def _render_banner(self, now: dt.datetime) -> str:
        if self.status is None:
            return "Reconnecting..." if self.status_error else "Loading status..."
        if self.storage_limit_reached:
            return "! Storage limit reached. The site is at capacity. Check back later!"
        if self.status.posting_enabled:
            headline = "Posting is currently enabled"
            action = "until posting closes"
        else:
            headline = "Posting is currently disabled (weekends only, Saturday and Sunday, UTC timezone)"
            action = "until posting opens"
        countdown = format_countdown(self.status.next_change_timestamp, now)
        suffix = f"{countdown} {action}" if countdown else "Refreshing status..."
        if self.status_error:
            suffix = f"{suffix} (reconnecting)"
        return f"{headline} | {suffix}"

    def _render_thread(self, thread: ThreadRead, now: dt.datetime) -> list[str]:
        is_open = thread.id in self.open_threads
        noun = "reply" if thread.reply_count == 1 else "replies"
        lines = [f"#{thread.id} Anonymous/{thread.user_id} {format_age(thread.created_at, now)}"]
        body_lines = thread.body.splitlines() or [""]
        if not is_open and len(body_lines) > PREVIEW_LINES:
            body_lines = [*body_lines[:PREVIEW_LINES], "..."]
        lines.extend(f"  {line}" for line in body_lines)
        lines.append(f"  [{thread.reply_count} {noun}]")
        if is_open:
            for reply in self.replies.get(thread.id, []):
                lines.append(f"    > #{reply.id} Anonymous/{reply.user_id} {format_age(reply.created_at, now)}")
                lines.extend(f"      {line}" for line in reply.body.splitlines())
        lines.append("")
        return lines

    def _set_threads(self, threads: list[ThreadRead]) -> None:
        self.threads = sorted(threads, key=lambda thread: (thread.created_at, thread.id), reverse=True)
        known = {thread.id for thread in self.threads}
        self.open_threads &= known
        for thread_id in list(self.replies):
            if thread_id not in known:
                del self.replies[thread_id]

    def _replace_thread(self, thread: ThreadRead) -> None:
        self.threads = [thread if existing.id == thread.id else existing for existing in self.threads]

    def _check_content(self, content: str) -> bool:
        if not content:
            self.toast("Please enter some content", "error")
            return False
        if len(content) > self.max_body_length:
            self.toast(f"Body too long (max {self.max_body_length} characters)", "error")
            return False
        return True

    def _report_post_failure(self, exc: ApiError, fallback: str) -> None:
        if exc.status_code is None:
            self.toast("Network error. Try again later.", "error")
        else:
            self.toast(exc.message or fallback, "error")
        if exc.storage_limit:
            self.refresh_status()
