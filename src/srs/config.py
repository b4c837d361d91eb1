"""
Configuration for the spaced-repetition engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[2]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class SchedulerConfig:
    """Constants for the SM-2 variant used by `SM2Scheduler`."""

    min_ease_factor: float = 1.3
    initial_ease_factor: float = 2.5
    initial_interval_days: int = 1
    easy_bonus: float = 0.15
    good_bonus: float = 0.0
    hard_penalty: float = -0.20
    fail_penalty: float = -0.30
    first_interval_days: int = 1
    second_interval_days: int = 3


@dataclass
class ClassifierConfig:
    """Response-latency cut-offs (milliseconds) for correct answers."""

    easy_below_ms: int = 5000
    good_below_ms: int = 10000


@dataclass
class EngineConfig:
    """Settings for the orchestration layer and read-side aggregations."""

    timezone: str = "UTC"
    # Display-only heuristic for the study-plan review estimate.
    review_ratio: float = 0.3
    store_timeout_seconds: float = 5.0
    store_max_retries: int = 3
    store_backoff_seconds: float = 0.2
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            timezone=os.getenv("SRS_TIMEZONE", "UTC"),
            review_ratio=_get_env_float("SRS_REVIEW_RATIO", 0.3),
            store_timeout_seconds=_get_env_float("SRS_STORE_TIMEOUT_SECONDS", 5.0),
            store_max_retries=_get_env_int("SRS_STORE_MAX_RETRIES", 3),
        )
