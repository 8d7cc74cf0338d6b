from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from textchan.api import deps
from textchan.schemas.reply import ReplyRead, ThreadRepliesResponse
from textchan.schemas.thread import PostCreate, ThreadRead
from textchan.services.forum import ForumService

router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("", response_model=list[ThreadRead])
def list_threads(service: ForumService = Depends(deps.get_forum_service)) -> list[ThreadRead]:
    return [ThreadRead.model_validate(thread) for thread in service.list_threads()]


@router.post("", response_model=ThreadRead, status_code=status.HTTP_201_CREATED)
def create_thread(
    payload: Any = Body(default=None),
    service: ForumService = Depends(deps.get_forum_service),
) -> ThreadRead:
    post_in = PostCreate.from_payload(payload)
    thread = service.create_thread(post_in.body, post_in.user_id)
    return ThreadRead.model_validate(thread)


@router.get("/{thread_id}/replies", response_model=ThreadRepliesResponse)
def list_thread_replies(
    thread_id: int,
    service: ForumService = Depends(deps.get_forum_service),
) -> ThreadRepliesResponse:
    return ThreadRepliesResponse.model_validate(service.get_thread(thread_id))


@router.post("/{thread_id}/replies", response_model=ReplyRead, status_code=status.HTTP_201_CREATED)
def create_reply(
    thread_id: int,
    payload: Any = Body(default=None),
    service: ForumService = Depends(deps.get_forum_service),
) -> ReplyRead:
    post_in = PostCreate.from_payload(payload)
    reply = service.create_reply(thread_id, post_in.body, post_in.user_id)
    return ReplyRead.model_validate(reply)
