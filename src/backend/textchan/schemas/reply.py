from __future__ import annotations

import datetime as dt
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from textchan.schemas.thread import ThreadRead


class ReplyRead(BaseModel):
    id: int
    thread_id: int = Field(..., alias="threadId")
    body: str
    user_id: str = Field(..., alias="userId")
    created_at: dt.datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ThreadRepliesResponse(BaseModel):
    """A thread together with its replies, oldest first."""

    thread: ThreadRead
    replies: List[ReplyRead]

    model_config = ConfigDict(from_attributes=True)
