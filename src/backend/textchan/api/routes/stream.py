from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from textchan.api import deps
from textchan.schemas.thread import ThreadRead
from textchan.services.broadcaster import THREAD_ADDED
from textchan.services.errors import ForumError
from textchan.services.forum import ForumService
from textchan.storage.types import ThreadRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/threads", tags=["threads"])

HEARTBEAT = ": heartbeat\n\n"


def format_event(name: str, thread: ThreadRecord) -> str:
    payload = ThreadRead.model_validate(thread).model_dump_json(by_alias=True)
    return f"event: {name}\ndata: {payload}\n\n"


async def thread_event_stream(
    service: ForumService,
    heartbeat_seconds: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    """Yield the current thread list as `thread-added` events, then live mutations.

    There is no replay buffer: a reconnecting client gets a fresh snapshot.
    The subscription is taken before the snapshot read so no mutation falls
    between the two.
    """
    subscription = service.broadcaster.subscribe()
    try:
        try:
            threads = await run_in_threadpool(service.list_threads)
        except ForumError as exc:
            logger.error("Error streaming threads: %s", exc)
            threads = []
        for thread in threads:
            yield format_event(THREAD_ADDED, thread)

        while not await is_disconnected():
            event = await subscription.next_event(timeout=heartbeat_seconds)
            if event is None:
                yield HEARTBEAT
            else:
                yield format_event(event.name, event.thread)
    finally:
        subscription.close()


@router.get("/stream", summary="Server-sent events for thread changes")
async def stream_threads(
    request: Request,
    service: ForumService = Depends(deps.get_forum_service),
) -> StreamingResponse:
    heartbeat_seconds = request.app.state.settings.stream_heartbeat_seconds
    return StreamingResponse(
        thread_event_stream(service, heartbeat_seconds, request.is_disconnected),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
