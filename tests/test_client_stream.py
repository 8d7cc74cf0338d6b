from __future__ import annotations

import datetime as dt
import json

import httpx
import pytest

from textchan.cli import STATUS_POLL_SECONDS, THREADS_POLL_SECONDS, Watcher
from textchan.client.api import ApiError, TextchanClient
from textchan.client.feed import ThreadFeed
from textchan.client.view import ForumView
from textchan.services.broadcaster import THREAD_ADDED, THREAD_MODIFIED, THREAD_REMOVED

WEDNESDAY = dt.datetime(2025, 1, 8, 12, 0, tzinfo=dt.timezone.utc)
NEXT_CHANGE = dt.datetime(2025, 1, 11, 0, 0, tzinfo=dt.timezone.utc)

FIRST = {"id": 1, "body": "first", "userId": "AAA11111", "createdAt": "2025-01-04T10:00:00Z", "replyCount": 0}
SECOND = {"id": 2, "body": "second", "userId": "BBB22222", "createdAt": "2025-01-04T11:00:00Z", "replyCount": 0}


def _event(name: str, thread: dict) -> str:
    return f"event: {name}\ndata: {json.dumps(thread)}\n\n"


class StreamingForumApi:
    """Serves status, threads, replies and a canned event stream."""

    def __init__(self, stream_body: str = "", stream_status: int = 200) -> None:
        self.stream_body = stream_body
        self.stream_status = stream_status
        self.threads = [FIRST]
        self.replies: dict[int, list[dict]] = {1: [], 2: []}
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        if path == "/api/threads/stream":
            return httpx.Response(
                self.stream_status,
                content=self.stream_body.encode(),
                headers={"Content-Type": "text/event-stream"},
            )
        if path == "/api/status":
            return httpx.Response(
                200,
                json={
                    "postingEnabled": False,
                    "nextChangeTimestamp": NEXT_CHANGE.isoformat(),
                    "currentTimestamp": WEDNESDAY.isoformat(),
                    "timezone": "UTC",
                    "storage": {"limitReached": False, "currentSize": 10, "maxSize": 1000, "usagePercent": 1.0},
                },
            )
        if path == "/api/threads":
            return httpx.Response(200, json=self.threads)
        thread_id = int(path.split("/")[3])
        thread = next(item for item in [FIRST, SECOND] if item["id"] == thread_id)
        thread = {**thread, "replyCount": len(self.replies[thread_id])}
        return httpx.Response(200, json={"thread": thread, "replies": self.replies[thread_id]})


def _client(api: StreamingForumApi) -> TextchanClient:
    return TextchanClient("http://textchan.test", transport=httpx.MockTransport(api))


def test_stream_events_parses_named_events_and_skips_comments() -> None:
    body = (
        _event(THREAD_ADDED, SECOND)
        + ": heartbeat\n\n"
        + "event: something-else\ndata: {}\n\n"
        + _event(THREAD_MODIFIED, {**FIRST, "replyCount": 4})
    )
    with _client(StreamingForumApi(body)) as client:
        events = list(client.stream_events())

    assert [(name, thread.id) for name, thread in events] == [(THREAD_ADDED, 2), (THREAD_MODIFIED, 1)]
    assert events[1][1].reply_count == 4


def test_stream_events_rejects_error_status_and_bad_payloads() -> None:
    with _client(StreamingForumApi(stream_status=503)) as client:
        with pytest.raises(ApiError) as excinfo:
            list(client.stream_events())
    assert excinfo.value.status_code == 503

    with _client(StreamingForumApi("event: thread-added\ndata: {not json\n\n")) as client:
        with pytest.raises(ApiError, match="expected JSON"):
            list(client.stream_events())


def test_stream_events_wraps_connection_errors() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with TextchanClient("http://textchan.test", transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(ApiError) as excinfo:
            list(client.stream_events())
    assert excinfo.value.status_code is None


def test_feed_folds_events_into_view_then_reports_stream_gone() -> None:
    body = _event(THREAD_ADDED, FIRST) + _event(THREAD_ADDED, SECOND) + _event(THREAD_REMOVED, FIRST)
    api = StreamingForumApi(body)
    with _client(api) as client:
        view = ForumView(client=client, user_id="ME123456")
        view.refresh_threads()
        feed = ThreadFeed(client)

        feed.run()
        applied = feed.drain(view)

    assert applied == 3
    assert feed.live is False
    assert [thread.id for thread in view.threads] == [2]
    assert [toast.message for toast in view.drain_toasts()] == ["New thread received"]


def test_modified_event_reloads_open_panel() -> None:
    api = StreamingForumApi()
    with _client(api) as client:
        view = ForumView(client=client, user_id="ME123456")
        view.refresh_threads()
        view.toggle(1)
        api.replies[1].append(
            {"id": 5, "threadId": 1, "body": "pushed reply", "userId": "CCC33333", "createdAt": "2025-01-04T10:30:00Z"}
        )

        view.apply_event(THREAD_MODIFIED, view.threads[0].model_copy(update={"reply_count": 1}))

    assert view.threads[0].reply_count == 1
    assert [reply.body for reply in view.replies[1]] == ["pushed reply"]


class StubFeed:
    def __init__(self, live: bool) -> None:
        self.live = live
        self.drains = 0

    def drain(self, view: ForumView) -> int:
        self.drains += 1
        return 0


def test_watcher_skips_thread_polls_while_stream_is_live() -> None:
    api = StreamingForumApi()
    feed = StubFeed(live=True)
    with _client(api) as client:
        watcher = Watcher(ForumView(client=client, user_id="ME123456"), feed)

        watcher.tick(THREADS_POLL_SECONDS, now=WEDNESDAY)
        assert "/api/threads" not in api.calls

        feed.live = False
        watcher.tick(THREADS_POLL_SECONDS + 1, now=WEDNESDAY)

    assert api.calls == ["/api/threads"]
    assert feed.drains == 2


def test_watcher_polls_status_on_schedule() -> None:
    api = StreamingForumApi()
    with _client(api) as client:
        view = ForumView(client=client, user_id="ME123456")
        view.refresh_status()
        watcher = Watcher(view)

        watcher.tick(STATUS_POLL_SECONDS - 1, now=WEDNESDAY)
        assert api.calls.count("/api/status") == 1

        watcher.tick(STATUS_POLL_SECONDS, now=WEDNESDAY)

    assert api.calls.count("/api/status") == 2


def test_watcher_refetches_status_as_soon_as_countdown_ends() -> None:
    api = StreamingForumApi()
    with _client(api) as client:
        view = ForumView(client=client, user_id="ME123456")
        view.refresh_status()
        watcher = Watcher(view)

        assert view.countdown_elapsed(NEXT_CHANGE - dt.timedelta(seconds=1)) is False
        watcher.tick(1.0, now=NEXT_CHANGE - dt.timedelta(seconds=1))
        assert api.calls.count("/api/status") == 1

        assert view.countdown_elapsed(NEXT_CHANGE) is True
        watcher.tick(2.0, now=NEXT_CHANGE)

    assert api.calls.count("/api/status") == 2
