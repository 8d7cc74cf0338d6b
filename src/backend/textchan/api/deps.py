from __future__ import annotations

from fastapi import Request

from textchan.services.forum import ForumService


def get_forum_service(request: Request) -> ForumService:
    return request.app.state.forum_service
