from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from src.srs.dates import local_date, utc_now
from src.srs.errors import ValidationError
from src.srs.records import ScheduleState
from src.srs.stores import ScheduleStore


@dataclass(frozen=True)
class ForecastDay:
    date: dt.date
    count: int


def select_due(states: Iterable[ScheduleState], as_of: dt.datetime) -> List[str]:
    """Item ids whose review date has arrived; `== as_of` counts as due."""
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=dt.timezone.utc)
    return [state.item_id for state in states if state.next_review_date <= as_of]


def bucket_forecast(
    states: Iterable[ScheduleState],
    *,
    today: dt.date,
    horizon_days: int,
    tz: ZoneInfo,
) -> List[ForecastDay]:
    """
    Count reviews per local calendar day for `[today, today + horizon_days)`.

    Every day in the window is present, zero-filled. Reviews already overdue
    land in today's bucket; reviews past the window are dropped.
    """
    if horizon_days < 0:
        raise ValidationError("horizon_days must be non-negative")

    counts = [0] * horizon_days
    for state in states:
        offset = (local_date(state.next_review_date, tz) - today).days
        if offset < 0:
            offset = 0
        if offset < horizon_days:
            counts[offset] += 1

    return [
        ForecastDay(date=today + dt.timedelta(days=i), count=count)
        for i, count in enumerate(counts)
    ]


class DueSetResolver:
    """Read-only views over a learner's schedules."""

    def __init__(self, schedules: ScheduleStore, *, timezone: str = "UTC") -> None:
        self.schedules = schedules
        self.tz = ZoneInfo(timezone)

    async def due_now(self, learner_id: str, as_of: Optional[dt.datetime] = None) -> List[str]:
        as_of = as_of or utc_now()
        return select_due(await self.schedules.list_by_learner(learner_id), as_of)

    async def forecast(
        self,
        learner_id: str,
        horizon_days: int,
        *,
        now: Optional[dt.datetime] = None,
    ) -> List[ForecastDay]:
        if horizon_days < 0:
            raise ValidationError("horizon_days must be non-negative")
        now = now or utc_now()
        states = await self.schedules.list_by_learner(learner_id)
        return bucket_forecast(
            states,
            today=local_date(now, self.tz),
            horizon_days=horizon_days,
            tz=self.tz,
        )
