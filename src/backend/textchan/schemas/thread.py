from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PostCreate(BaseModel):
    """Body of a thread or reply submission.

    Fields stay untyped so that outside the posting window every payload is
    answered with 403; the service checks types, emptiness and length.
    """

    body: Any = None
    user_id: Any = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_payload(cls, payload: Any) -> "PostCreate":
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)


class ThreadRead(BaseModel):
    id: int
    body: str
    user_id: str = Field(..., alias="userId")
    created_at: dt.datetime = Field(..., alias="createdAt")
    reply_count: int = Field(default=0, alias="replyCount")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
