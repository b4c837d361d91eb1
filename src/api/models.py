"""
Request and response models for the spaced-repetition API.
"""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field


class AttemptRequest(BaseModel):
    """Request body for POST /api/srs/learners/{learner_id}/attempts."""

    item_id: str = Field(..., min_length=1)
    selected_index: int = Field(..., description="Index of the chosen answer option")
    response_time_ms: Optional[int] = Field(
        default=None,
        description="Time taken to answer; omit when not measured",
    )
    idempotency_key: Optional[str] = Field(
        default=None,
        max_length=128,
        description="Client-generated key; resubmitting the same key replays the first result",
    )
    session_set_id: Optional[str] = Field(
        default=None,
        description="Advance the saved practice session for this set",
    )


class ScheduleOut(BaseModel):
    """Review schedule for one learner and item."""

    item_id: str
    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_date: dt.datetime
    last_reviewed_at: Optional[dt.datetime] = None
    last_quality_rating: Optional[int] = None
    mastery: str


class AchievementOut(BaseModel):
    achievement_type: str
    achievement_name: str
    earned_at: dt.datetime


class AttemptResponse(BaseModel):
    """Response for a recorded attempt."""

    is_correct: bool
    quality_rating: int = Field(..., ge=1, le=5)
    schedule: ScheduleOut
    achievement: Optional[AchievementOut] = None
    replayed: bool = False
    degraded: List[str] = Field(
        default_factory=list,
        description="Post-write hooks that failed; the review itself was recorded",
    )


class DueItemsResponse(BaseModel):
    learner_id: str
    as_of: dt.datetime
    item_ids: List[str] = Field(default_factory=list)
    count: int = 0


class ForecastDayOut(BaseModel):
    date: dt.date
    count: int


class ForecastResponse(BaseModel):
    learner_id: str
    days: List[ForecastDayOut] = Field(default_factory=list)


class StreakResponse(BaseModel):
    current_streak_days: int = 0
    longest_streak_days: int = 0
    total_mastered: int = 0
    total_learned: int = 0


class MasteryResponse(BaseModel):
    mastered: int = 0
    learning: int = 0
    struggling: int = 0
    learned: int = 0
    total: int = 0


class InitializeScheduleRequest(BaseModel):
    item_id: str = Field(..., min_length=1)


class StudyPlanRequest(BaseModel):
    """Request body for computing a study plan."""

    set_ids: List[str] = Field(..., min_length=1)
    target_date: dt.date
    strategy: str = Field(default="balanced", description="'balanced' or 'sequential'")


class StudyPlanDayOut(BaseModel):
    day: int
    date: dt.date
    sets_label: str
    new_cards: int
    est_reviews: int
    total_load: int


class StudyPlanResponse(BaseModel):
    daily_new_target: int
    days_remaining: int
    remaining_items: int
    total_items: int
    mastered_items: int
    strategy: str
    schedule: List[StudyPlanDayOut] = Field(default_factory=list)


class PlanTemplateRequest(BaseModel):
    """Request body for creating a reusable study-plan template."""

    title: str = Field(..., min_length=1, max_length=255)
    set_ids: List[str] = Field(..., min_length=1)
    target_date: dt.date
    strategy: str = "balanced"
    created_by: Optional[str] = None


class PlanTemplateOut(BaseModel):
    template_id: str
    title: str
    set_ids: List[str]
    target_date: dt.date
    strategy: str
    created_by: Optional[str] = None


class AssignTemplateRequest(BaseModel):
    learner_id: str = Field(..., min_length=1)


class SessionResultOut(BaseModel):
    item_id: str
    is_correct: bool
    quality_rating: int


class SessionStateIn(BaseModel):
    """Body for PUT /api/srs/learners/{learner_id}/sessions/{set_id}."""

    item_ids: List[str] = Field(default_factory=list)
    current_index: int = 0
    results: List[SessionResultOut] = Field(default_factory=list)
    started_at: Optional[dt.datetime] = None


class SessionStateOut(BaseModel):
    item_ids: List[str] = Field(default_factory=list)
    current_index: int = 0
    results: List[SessionResultOut] = Field(default_factory=list)
    started_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    completed: bool = False


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    database: str = "unknown"
