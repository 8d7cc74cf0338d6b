from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from textchan.schemas.reply import ReplyRead, ThreadRepliesResponse
from textchan.schemas.status import StatusResponse
from textchan.schemas.thread import ThreadRead

logger = logging.getLogger(__name__)

STREAM_EVENTS = frozenset({"thread-added", "thread-modified", "thread-removed"})

# Three missed heartbeats mean the stream is dead.
STREAM_READ_TIMEOUT = 90.0


class ApiError(RuntimeError):
    """Raised when the API answers with an error or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def storage_limit(self) -> bool:
        return self.status_code == 507


class TextchanClient:
    """Thin synchronous client for the Textchan HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def __enter__(self) -> "TextchanClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch_status(self) -> StatusResponse:
        return self._parse(StatusResponse, self._request("GET", "/api/status"))

    def fetch_threads(self) -> list[ThreadRead]:
        data = self._request("GET", "/api/threads")
        if not isinstance(data, list):
            raise ApiError("Invalid response format: expected a list of threads")
        return [self._parse(ThreadRead, item) for item in data]

    def fetch_replies(self, thread_id: int) -> ThreadRepliesResponse:
        return self._parse(ThreadRepliesResponse, self._request("GET", f"/api/threads/{thread_id}/replies"))

    def post_thread(self, body: str, user_id: str) -> ThreadRead:
        data = self._request("POST", "/api/threads", json={"body": body, "userId": user_id})
        return self._parse(ThreadRead, data)

    def post_reply(self, thread_id: int, body: str, user_id: str) -> ReplyRead:
        data = self._request("POST", f"/api/threads/{thread_id}/replies", json={"body": body, "userId": user_id})
        return self._parse(ReplyRead, data)

    def stream_events(self, read_timeout: float | None = STREAM_READ_TIMEOUT) -> Iterator[tuple[str, ThreadRead]]:
        """Follow the server-sent thread stream, yielding `(event name, thread)` pairs.

        The generator ends when the server closes the stream; a dropped or
        refused connection raises `ApiError`.
        """
        timeout = httpx.Timeout(self._timeout, read=read_timeout)
        try:
            with self._client.stream("GET", "/api/threads/stream", timeout=timeout) as response:
                if response.is_error:
                    raise ApiError(f"HTTP {response.status_code}", status_code=response.status_code)
                name, data = "message", []
                for line in response.iter_lines():
                    if not line:
                        if data and name in STREAM_EVENTS:
                            yield name, self._parse_event(data)
                        name, data = "message", []
                    elif line.startswith(":"):
                        continue
                    elif line.startswith("event:"):
                        name = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        value = line[len("data:"):]
                        data.append(value[1:] if value.startswith(" ") else value)
        except httpx.HTTPError as exc:
            logger.error("Thread stream failed: %s", exc)
            raise ApiError(f"Network error: {exc}") from exc

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Network error: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise ApiError(message or f"HTTP {response.status_code}", status_code=response.status_code)
        if data is None:
            raise ApiError("Invalid response format: expected JSON", status_code=response.status_code)
        return data

    def _parse_event(self, data: list[str]) -> ThreadRead:
        try:
            payload = json.loads("\n".join(data))
        except ValueError as exc:
            raise ApiError("Invalid stream event: expected JSON") from exc
        return self._parse(ThreadRead, payload)

    @staticmethod
    def _parse(model: Any, data: Any) -> Any:
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            raise ApiError(f"Invalid response format: {exc.error_count()} field error(s)") from exc
