from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import httpx
import pytest

from textchan.client import identity
from textchan.client.api import ApiError, TextchanClient
from textchan.client.view import ForumView, format_countdown
from textchan.schemas.thread import ThreadRead
from textchan.services.broadcaster import THREAD_ADDED, THREAD_MODIFIED

NOW = dt.datetime(2025, 1, 8, 12, 0, tzinfo=dt.timezone.utc)


class FakeForumApi:
    """Route table standing in for the HTTP API."""

    def __init__(self) -> None:
        self.threads: list[dict] = [
            {"id": 2, "body": "second", "userId": "BBB22222", "createdAt": "2025-01-04T11:00:00Z", "replyCount": 1},
            {"id": 1, "body": "first", "userId": "AAA11111", "createdAt": "2025-01-04T10:00:00Z", "replyCount": 0},
        ]
        self.replies: dict[int, list[dict]] = {
            2: [{"id": 7, "threadId": 2, "body": "a reply", "userId": "CCC33333", "createdAt": "2025-01-04T11:05:00Z"}],
            1: [],
        }
        self.posting_enabled = True
        self.limit_reached = False
        self.post_status: int | None = None
        self.calls: list[tuple[str, str]] = []

    def status_payload(self) -> dict:
        return {
            "postingEnabled": self.posting_enabled,
            "nextChangeTimestamp": "2025-01-11T00:00:00Z",
            "currentTimestamp": "2025-01-08T12:00:00Z",
            "timezone": "UTC",
            "storage": {
                "limitReached": self.limit_reached,
                "currentSize": 950,
                "maxSize": 1000,
                "usagePercent": 95.0 if self.limit_reached else 10.0,
            },
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if path == "/api/status":
            return httpx.Response(200, json=self.status_payload())
        if path == "/api/threads" and request.method == "GET":
            return httpx.Response(200, json=self.threads)
        if request.method == "POST" and self.post_status is not None:
            message = "Storage limit reached. Posts temporarily disabled." if self.post_status == 507 else "Posting is only allowed on weekends"
            return httpx.Response(self.post_status, json={"error": message})
        if path == "/api/threads" and request.method == "POST":
            payload = json.loads(request.content)
            thread = {
                "id": 3,
                "body": payload["body"],
                "userId": payload["userId"],
                "createdAt": "2025-01-04T12:00:00Z",
                "replyCount": 0,
            }
            self.threads.insert(0, thread)
            self.replies[3] = []
            return httpx.Response(201, json=thread)
        thread_id = int(path.split("/")[3])
        thread = next((item for item in self.threads if item["id"] == thread_id), None)
        if thread is None:
            return httpx.Response(404, json={"error": "Thread not found"})
        if request.method == "POST":
            payload = json.loads(request.content)
            reply = {
                "id": 8,
                "threadId": thread_id,
                "body": payload["body"],
                "userId": payload["userId"],
                "createdAt": "2025-01-04T12:30:00Z",
            }
            self.replies[thread_id].append(reply)
            thread["replyCount"] += 1
            return httpx.Response(201, json=reply)
        return httpx.Response(200, json={"thread": thread, "replies": self.replies[thread_id]})


@pytest.fixture()
def api() -> FakeForumApi:
    return FakeForumApi()


@pytest.fixture()
def view(api: FakeForumApi) -> ForumView:
    client = TextchanClient("http://textchan.test", transport=httpx.MockTransport(api))
    yield ForumView(client=client, user_id="ME123456")
    client.close()


def test_client_raises_api_error_with_server_message(api: FakeForumApi) -> None:
    api.post_status = 403
    with TextchanClient("http://textchan.test", transport=httpx.MockTransport(api)) as client:
        with pytest.raises(ApiError) as excinfo:
            client.post_thread("hello", "ME123456")
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Posting is only allowed on weekends"


def test_client_rejects_non_list_thread_payload() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"threads": []}))
    with TextchanClient("http://textchan.test", transport=transport) as client:
        with pytest.raises(ApiError, match="expected a list"):
            client.fetch_threads()


def test_client_wraps_network_errors() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with TextchanClient("http://textchan.test", transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(ApiError) as excinfo:
            client.fetch_status()
    assert excinfo.value.status_code is None


def test_background_refresh_keeps_open_panels_open(view: ForumView, api: FakeForumApi) -> None:
    view.refresh_threads()
    view.toggle(2)
    assert view.open_threads == {2}
    assert [reply.body for reply in view.replies[2]] == ["a reply"]

    api.replies[2].append(
        {"id": 9, "threadId": 2, "body": "late reply", "userId": "DDD44444", "createdAt": "2025-01-04T11:30:00Z"}
    )
    api.threads[0]["replyCount"] = 2
    view.refresh_threads()

    assert view.open_threads == {2}
    assert [reply.body for reply in view.replies[2]] == ["a reply", "late reply"]
    assert view.threads[0].reply_count == 2

    view.toggle(2)
    assert view.open_threads == set()


def test_replies_are_fetched_lazily(view: ForumView, api: FakeForumApi) -> None:
    view.refresh_threads()
    assert ("GET", "/api/threads/2/replies") not in api.calls
    view.toggle(2)
    assert ("GET", "/api/threads/2/replies") in api.calls


def test_failed_reply_fetch_closes_panel(view: ForumView) -> None:
    view.refresh_threads()
    view.toggle(99)
    assert 99 not in view.open_threads
    assert view.drain_toasts()[-1].level == "error"


def test_post_thread_success_refreshes_list(view: ForumView) -> None:
    view.refresh_status()
    assert view.post_thread("  brand new  ") is True
    assert view.threads[0].body == "brand new"
    assert view.threads[0].user_id == "ME123456"
    assert [toast.message for toast in view.drain_toasts()] == ["Thread posted successfully!"]


def test_post_reply_opens_panel_and_reloads(view: ForumView) -> None:
    view.refresh_threads()
    assert view.post_reply(1, "me too") is True
    assert 1 in view.open_threads
    assert [reply.body for reply in view.replies[1]] == ["me too"]
    assert view.threads[-1].reply_count == 1


def test_capacity_error_refetches_status(view: ForumView, api: FakeForumApi) -> None:
    view.refresh_status()
    assert view.storage_limit_reached is False

    api.post_status = 507
    api.limit_reached = True
    assert view.post_thread("anything") is False

    assert view.storage_limit_reached is True
    assert api.calls.count(("GET", "/api/status")) == 2
    assert view.drain_toasts()[0].message == "Storage limit reached. Posts temporarily disabled."
    assert "Storage limit reached" in view.render(NOW)


def test_local_validation_blocks_empty_and_oversized_posts(view: ForumView, api: FakeForumApi) -> None:
    assert view.post_thread("   ") is False
    assert view.post_thread("x" * 2001) is False
    assert [toast.message for toast in view.drain_toasts()] == [
        "Please enter some content",
        "Body too long (max 2000 characters)",
    ]
    assert not any(method == "POST" for method, _ in api.calls)


def test_stream_events_update_thread_list(view: ForumView) -> None:
    view.refresh_threads()
    newer = ThreadRead.model_validate(
        {"id": 5, "body": "pushed", "userId": "EEE55555", "createdAt": "2025-01-04T13:00:00Z", "replyCount": 0}
    )
    view.apply_event(THREAD_ADDED, newer)
    view.apply_event(THREAD_ADDED, newer)
    assert [thread.id for thread in view.threads] == [5, 2, 1]

    modified = newer.model_copy(update={"reply_count": 3})
    view.apply_event(THREAD_MODIFIED, modified)
    assert view.threads[0].reply_count == 3


def test_render_shows_banner_countdown_and_threads(view: ForumView, api: FakeForumApi) -> None:
    api.posting_enabled = False
    view.refresh_status()
    view.refresh_threads()
    view.toggle(2)

    text = view.render(NOW)

    assert text.splitlines()[0].startswith("Posting is currently disabled")
    assert "UTC" in text.splitlines()[0]
    assert "2d 12h 0m 0s until posting opens" in text
    assert "#2 Anonymous/BBB22222" in text
    assert "[1 reply]" in text
    assert "[0 replies]" in text
    assert "> #7 Anonymous/CCC33333" in text


def test_format_countdown() -> None:
    assert format_countdown(NOW + dt.timedelta(seconds=5), NOW) == "5s"
    assert format_countdown(NOW + dt.timedelta(minutes=1, seconds=2), NOW) == "1m 2s"
    assert format_countdown(NOW + dt.timedelta(hours=1), NOW) == "1h 0m 0s"
    assert format_countdown(NOW, NOW) is None


def test_user_id_is_persisted(tmp_path: Path) -> None:
    path = tmp_path / "user_id"
    first = identity.get_or_create_user_id(path)
    assert len(first) == identity.USER_ID_LENGTH
    assert set(first) <= set(identity.USER_ID_ALPHABET)
    assert identity.get_or_create_user_id(path) == first


def test_user_id_falls_back_to_memory(tmp_path: Path) -> None:
    unwritable = tmp_path / "missing-dir" / "user_id"
    first = identity.get_or_create_user_id(unwritable)
    assert identity.get_or_create_user_id(unwritable) == first
    assert not unwritable.exists()
