from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import List, Optional


MASTERED = "mastered"
LEARNING = "learning"
STRUGGLING = "struggling"


@dataclass(frozen=True)
class ScheduleState:
    """
    Review schedule for one (learner, item) pair.

    `last_reviewed_at` and `last_quality_rating` are audit fields only; the
    scheduler never reads them.
    """

    learner_id: str
    item_id: str
    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_date: dt.datetime
    last_reviewed_at: Optional[dt.datetime] = None
    last_quality_rating: Optional[int] = None


@dataclass(frozen=True)
class Attempt:
    learner_id: str
    item_id: str
    selected_index: int
    is_correct: bool
    response_time_ms: Optional[int]
    quality_rating: int
    attempted_at: dt.datetime
    idempotency_key: Optional[str] = None


@dataclass
class Streak:
    learner_id: str
    current_streak_days: int = 0
    longest_streak_days: int = 0
    last_practice_date: Optional[dt.date] = None
    total_items_learned: int = 0
    total_items_mastered: int = 0


@dataclass(frozen=True)
class Achievement:
    learner_id: str
    achievement_type: str
    achievement_name: str
    earned_at: dt.datetime


@dataclass(frozen=True)
class ItemRecord:
    item_id: str
    set_id: str
    correct_answer_index: int
    choice_count: int


@dataclass(frozen=True)
class ItemSet:
    set_id: str
    title: str
    total_items: int


@dataclass
class SessionResult:
    item_id: str
    is_correct: bool
    quality_rating: int


@dataclass
class SessionState:
    """Resumable practice session progress, keyed by (learner, set)."""

    item_ids: List[str]
    current_index: int = 0
    results: List[SessionResult] = field(default_factory=list)
    started_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    @property
    def completed(self) -> bool:
        return self.current_index >= len(self.item_ids)


@dataclass(frozen=True)
class StudyPlanTemplate:
    template_id: str
    title: str
    set_ids: List[str]
    target_date: dt.date
    strategy: str
    created_by: Optional[str] = None


def classify_mastery(state: ScheduleState) -> str:
    if state.ease_factor >= 3.0 and state.interval_days >= 21:
        return MASTERED
    if state.repetitions == 0 or state.ease_factor < 2.0:
        return STRUGGLING
    return LEARNING


def is_learned(state: ScheduleState) -> bool:
    return state.repetitions > 0
