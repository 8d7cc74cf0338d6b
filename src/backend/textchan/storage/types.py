"""Backend-neutral records returned by every persistence backend."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass


@dataclass(frozen=True)
class ThreadRecord:
    id: int
    body: str
    user_id: str
    created_at: dt.datetime
    reply_count: int = 0


@dataclass(frozen=True)
class ReplyRecord:
    id: int
    thread_id: int
    body: str
    user_id: str
    created_at: dt.datetime


@dataclass(frozen=True)
class StorageStatus:
    """Result of a capacity check.

    `limit_reached` flips once `current_size` crosses the warning threshold
    of `max_size`, not when the store is actually full.
    """

    limit_reached: bool
    current_size: int
    max_size: int
    usage_percent: float

    @classmethod
    def measure(cls, current_size: int, max_size: int, threshold: float) -> "StorageStatus":
        return cls(
            limit_reached=current_size >= max_size * threshold,
            current_size=current_size,
            max_size=max_size,
            usage_percent=(current_size / max_size) * 100,
        )

    @classmethod
    def unknown(cls, max_size: int) -> "StorageStatus":
        return cls(limit_reached=False, current_size=0, max_size=max_size, usage_percent=0.0)


def as_utc(value: dt.datetime) -> dt.datetime:
    """Attach or convert to UTC; naive values are assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)
