from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Optional, Protocol, runtime_checkable
from zoneinfo import ZoneInfo

from src.srs.config import SchedulerConfig
from src.srs.dates import start_of_next_day, utc_now
from src.srs.errors import ValidationError
from src.srs.records import ScheduleState


@runtime_checkable
class ReviewScheduler(Protocol):
    """
    Strategy consumed by the attempt recorder.

    Implementations must be pure: same (state, quality, now) in, same state
    out, no I/O.
    """

    def initial_state(self, learner_id: str, item_id: str, *, now: dt.datetime) -> ScheduleState:
        ...

    def compute_next(self, state: ScheduleState, quality: int, *, now: dt.datetime) -> ScheduleState:
        ...


def validate_quality(quality: int) -> None:
    # bool is an int subclass; a True/False rating is a caller bug.
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(f"quality must be an int in [1, 5], got {quality!r}")
    if quality < 1 or quality > 5:
        raise ValidationError(f"quality must be between 1 and 5, got {quality}")


class SM2Scheduler:
    """
    SM-2 variant with additive ease deltas.

        - quality is an integer in [1, 5]
        - quality < 3 is a lapse: repetitions and interval reset to 0
        - the first two successful reviews use a fixed 1 / 3 day ladder,
          later ones multiply the previous interval by the new ease
        - a one-day interval is due at the start of the next local day
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        *,
        timezone: str = "UTC",
    ) -> None:
        self.config = config or SchedulerConfig()
        self.tz = ZoneInfo(timezone)

    def ease_delta(self, quality: int) -> float:
        if quality == 5:
            return self.config.easy_bonus
        if quality in (3, 4):
            return self.config.good_bonus
        if quality == 2:
            return self.config.hard_penalty
        return self.config.fail_penalty

    def initial_state(
        self,
        learner_id: str,
        item_id: str,
        *,
        now: Optional[dt.datetime] = None,
    ) -> ScheduleState:
        """Fresh schedule: due immediately, nothing learned yet."""
        now = now or utc_now()
        return ScheduleState(
            learner_id=learner_id,
            item_id=item_id,
            ease_factor=self.config.initial_ease_factor,
            interval_days=self.config.initial_interval_days,
            repetitions=0,
            next_review_date=now,
        )

    def compute_next(
        self,
        state: ScheduleState,
        quality: int,
        *,
        now: Optional[dt.datetime] = None,
    ) -> ScheduleState:
        """
        Return the schedule that follows `state` after a review of `quality`.

        The input state is not modified.
        """
        validate_quality(quality)
        now = now or utc_now()

        ease = max(self.config.min_ease_factor, state.ease_factor + self.ease_delta(quality))
        reps = int(state.repetitions)
        interval = int(state.interval_days)

        if quality < 3:
            reps = 0
            interval = 0
        else:
            if reps == 0:
                interval = self.config.first_interval_days
            elif reps == 1:
                interval = self.config.second_interval_days
            else:
                interval = int(round(interval * ease))
            reps += 1

        if interval == 1:
            next_review = start_of_next_day(now, self.tz)
        else:
            next_review = now + dt.timedelta(days=interval)

        return dataclasses.replace(
            state,
            ease_factor=ease,
            interval_days=interval,
            repetitions=reps,
            next_review_date=next_review,
            last_reviewed_at=now,
            last_quality_rating=quality,
        )
