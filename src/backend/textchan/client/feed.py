from __future__ import annotations

import logging
import queue
import threading

from textchan.client.api import ApiError, TextchanClient
from textchan.client.view import ForumView
from textchan.schemas.thread import ThreadRead

logger = logging.getLogger(__name__)


class ThreadFeed:
    """Follow the thread stream on a background thread.

    Events are queued and folded into a `ForumView` by `drain`, so the view is
    only ever touched from the caller's thread. `live` drops to False once the
    stream fails or ends; callers poll instead from then on.
    """

    def __init__(self, client: TextchanClient) -> None:
        self._client = client
        self._events: queue.Queue[tuple[str, ThreadRead]] = queue.Queue()
        self._live = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def live(self) -> bool:
        return self._live.is_set()

    def start(self) -> None:
        self._live.set()
        self._thread = threading.Thread(target=self.run, name="textchan-stream", daemon=True)
        self._thread.start()

    def run(self) -> None:
        self._live.set()
        try:
            for event in self._client.stream_events():
                self._events.put(event)
        except ApiError as exc:
            logger.warning("Real-time connection lost, falling back to polling: %s", exc)
        else:
            logger.warning("Real-time stream closed, falling back to polling")
        finally:
            self._live.clear()

    def drain(self, view: ForumView) -> int:
        applied = 0
        while True:
            try:
                name, thread = self._events.get_nowait()
            except queue.Empty:
                return applied
            view.apply_event(name, thread)
            applied += 1
