from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class StorageStatusRead(BaseModel):
    limit_reached: bool = Field(..., alias="limitReached")
    current_size: int = Field(..., alias="currentSize")
    max_size: int = Field(..., alias="maxSize")
    usage_percent: float = Field(..., alias="usagePercent")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class StatusResponse(BaseModel):
    posting_enabled: bool = Field(..., alias="postingEnabled")
    next_change_timestamp: dt.datetime = Field(..., alias="nextChangeTimestamp")
    current_timestamp: dt.datetime = Field(..., alias="currentTimestamp")
    timezone: str = "UTC"
    storage: StorageStatusRead

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
