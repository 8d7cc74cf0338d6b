from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from textchan.api import deps
from textchan.services.forum import ForumService

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="Readiness probe")
async def readiness_check(service: ForumService = Depends(deps.get_forum_service)) -> dict[str, Any]:
    await run_in_threadpool(service.backend.ping)
    return {"status": "ready"}
