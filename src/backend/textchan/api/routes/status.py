from __future__ import annotations

from fastapi import APIRouter, Depends

from textchan.api import deps
from textchan.schemas.status import StatusResponse
from textchan.services.forum import ForumService

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse, summary="Posting window and storage usage")
def get_status(service: ForumService = Depends(deps.get_forum_service)) -> StatusResponse:
    return StatusResponse.model_validate(service.status())
