"""
Spaced-repetition scheduling engine.

Provides:
- Quality classification of answer outcomes
- SM-2 variant review scheduling (pure)
- Attempt recording with streak and achievement tracking
- Due-set and review forecast queries
- Study-plan forecasting against a target date
"""

from .config import ClassifierConfig, EngineConfig, SchedulerConfig
from .due import DueSetResolver, ForecastDay
from .engine import SpacedRepetitionEngine
from .errors import (
    Degraded,
    DuplicateAttempt,
    ItemNotFound,
    LearnerNotFound,
    NotFound,
    SetNotFound,
    SRSError,
    StoreUnavailable,
    TemplateNotFound,
    ValidationError,
)
from .planner import StudyPlan, StudyPlanDay, StudyPlanForecaster, simulate_plan
from .quality import classify_quality
from .records import ScheduleState, SessionState, classify_mastery
from .recorder import AttemptRecorder, AttemptResult
from .scheduler import ReviewScheduler, SM2Scheduler
from .streaks import StreakSummary, StreakTracker

__all__ = [
    "AttemptRecorder",
    "AttemptResult",
    "ClassifierConfig",
    "classify_mastery",
    "classify_quality",
    "Degraded",
    "DuplicateAttempt",
    "DueSetResolver",
    "EngineConfig",
    "ForecastDay",
    "ItemNotFound",
    "LearnerNotFound",
    "NotFound",
    "ReviewScheduler",
    "ScheduleState",
    "SchedulerConfig",
    "SessionState",
    "SetNotFound",
    "SM2Scheduler",
    "SpacedRepetitionEngine",
    "SRSError",
    "StoreUnavailable",
    "StreakSummary",
    "StreakTracker",
    "StudyPlan",
    "StudyPlanDay",
    "StudyPlanForecaster",
    "simulate_plan",
    "TemplateNotFound",
    "ValidationError",
]
