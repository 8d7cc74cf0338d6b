from __future__ import annotations

import datetime as dt
from typing import Callable

from textchan.storage.types import as_utc

SATURDAY = 5
SUNDAY = 6

Clock = Callable[[], dt.datetime]


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class PostingPolicy:
    """Weekend-only posting gate, evaluated on the UTC calendar.

    Side-effect free; safe to consult on every request.
    """

    def __init__(self, allow_weekday_posting: bool = False, clock: Clock = utc_now) -> None:
        self.allow_weekday_posting = allow_weekday_posting
        self._clock = clock

    def now(self) -> dt.datetime:
        return as_utc(self._clock())

    def is_posting_allowed(self, now: dt.datetime | None = None) -> bool:
        if self.allow_weekday_posting:
            return True
        moment = as_utc(now) if now is not None else self.now()
        return moment.weekday() in (SATURDAY, SUNDAY)

    def next_change_timestamp(self, now: dt.datetime | None = None) -> dt.datetime:
        """Return the next UTC midnight at which the weekend window opens or closes."""
        moment = as_utc(now) if now is not None else self.now()
        weekday = moment.weekday()
        if weekday == SUNDAY:
            days_until_change = 1
        elif weekday == SATURDAY:
            days_until_change = 2
        else:
            days_until_change = SATURDAY - weekday

        midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight + dt.timedelta(days=days_until_change)
