from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional
from zoneinfo import ZoneInfo

from src.srs.dates import local_date, utc_now
from src.srs.records import (
    LEARNING,
    MASTERED,
    STRUGGLING,
    Achievement,
    ScheduleState,
    Streak,
    classify_mastery,
    is_learned,
)
from src.srs.stores import AchievementStore, AttemptLog, ScheduleStore, StreakStore

logger = logging.getLogger(__name__)


class AchievementRule(NamedTuple):
    achievement_type: str
    metric: str  # mastered | streak | attempts
    threshold: int
    name: str
    description: str


# Evaluated in order; the first crossed rule not yet granted wins.
ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule("first_ten_mastered", "mastered", 10, "Getting Started", "Master your first 10 cards"),
    AchievementRule("fifty_mastered", "mastered", 50, "Making Progress", "Master 50 cards"),
    AchievementRule("hundred_mastered", "mastered", 100, "Milestone Master", "Master 100 cards"),
    AchievementRule("week_streak", "streak", 7, "Week Warrior", "Practice for 7 consecutive days"),
    AchievementRule("month_streak", "streak", 30, "Month Master", "Practice for 30 consecutive days"),
    AchievementRule("thousand_attempts", "attempts", 1000, "Dedicated Learner", "Complete 1000 card attempts"),
)

ACHIEVEMENT_CATALOG = {rule.achievement_type: rule for rule in ACHIEVEMENT_RULES}


@dataclass
class StreakSummary:
    current_streak_days: int
    longest_streak_days: int
    total_mastered: int
    total_learned: int


@dataclass
class MasteryBreakdown:
    mastered: int = 0
    learning: int = 0
    struggling: int = 0
    learned: int = 0

    @property
    def total(self) -> int:
        return self.mastered + self.learning + self.struggling


def advance_streak(streak: Streak, today: dt.date) -> Streak:
    """
    Apply one day of practice to `streak`.

    Practising again on the same day leaves the counters untouched.
    """
    last = streak.last_practice_date
    if last == today:
        current = streak.current_streak_days
    elif last is not None and last == today - dt.timedelta(days=1):
        current = streak.current_streak_days + 1
    else:
        current = 1
    return dataclasses.replace(
        streak,
        current_streak_days=current,
        longest_streak_days=max(streak.longest_streak_days, current),
        last_practice_date=today,
    )


def summarize_mastery(states: Iterable[ScheduleState]) -> MasteryBreakdown:
    breakdown = MasteryBreakdown()
    for state in states:
        bucket = classify_mastery(state)
        if bucket == MASTERED:
            breakdown.mastered += 1
        elif bucket == STRUGGLING:
            breakdown.struggling += 1
        elif bucket == LEARNING:
            breakdown.learning += 1
        if is_learned(state):
            breakdown.learned += 1
    return breakdown


def crossed_rules(*, mastered: int, streak_days: int, attempts: int) -> List[AchievementRule]:
    """
    Rules whose counter is at or above its threshold.

    This is every rule the learner qualifies for, not only the ones crossed
    by the latest attempt; already-earned rules are filtered out by the
    caller against the achievement store.
    """
    values = {"mastered": mastered, "streak": streak_days, "attempts": attempts}
    return [rule for rule in ACHIEVEMENT_RULES if values[rule.metric] >= rule.threshold]


class StreakTracker:
    """
    Maintains practice streaks and unlocks achievements.

    Totals are recomputed from a full scan of the learner's schedules on every
    update rather than accumulated, so they cannot drift from the schedules.
    """

    def __init__(
        self,
        *,
        streaks: StreakStore,
        schedules: ScheduleStore,
        achievements: AchievementStore,
        attempts: AttemptLog,
        timezone: str = "UTC",
    ) -> None:
        self.streaks = streaks
        self.schedules = schedules
        self.achievements = achievements
        self.attempts = attempts
        self.tz = ZoneInfo(timezone)

    async def update(self, learner_id: str, *, now: Optional[dt.datetime] = None) -> Streak:
        now = now or utc_now()
        today = local_date(now, self.tz)

        streak = await self.streaks.get(learner_id) or Streak(learner_id=learner_id)
        updated = advance_streak(streak, today)

        breakdown = summarize_mastery(await self.schedules.list_by_learner(learner_id))
        updated.total_items_mastered = breakdown.mastered
        updated.total_items_learned = breakdown.learned

        await self.streaks.upsert(updated)
        return updated

    async def check_achievements(
        self,
        learner_id: str,
        streak: Streak,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Optional[Achievement]:
        """Grant at most one newly crossed achievement and return it."""
        now = now or utc_now()
        total_attempts = await self.attempts.count_by_learner(learner_id)
        candidates = crossed_rules(
            mastered=streak.total_items_mastered,
            streak_days=streak.current_streak_days,
            attempts=total_attempts,
        )
        for rule in candidates:
            if await self.achievements.exists(learner_id, rule.achievement_type):
                continue
            achievement = Achievement(
                learner_id=learner_id,
                achievement_type=rule.achievement_type,
                achievement_name=rule.name,
                earned_at=now,
            )
            if await self.achievements.insert(achievement):
                logger.info("Achievement %s unlocked for learner %s", rule.achievement_type, learner_id)
                return achievement
        return None

    async def get_summary(self, learner_id: str) -> StreakSummary:
        streak = await self.streaks.get(learner_id)
        if streak is None:
            return StreakSummary(0, 0, 0, 0)
        return StreakSummary(
            current_streak_days=streak.current_streak_days,
            longest_streak_days=streak.longest_streak_days,
            total_mastered=streak.total_items_mastered,
            total_learned=streak.total_items_learned,
        )

    async def mastery_breakdown(self, learner_id: str) -> MasteryBreakdown:
        return summarize_mastery(await self.schedules.list_by_learner(learner_id))
