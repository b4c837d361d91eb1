from __future__ import annotations

from typing import Optional

from src.srs.config import ClassifierConfig
from src.srs.errors import ValidationError


def classify_quality(
    is_correct: bool,
    response_time_ms: Optional[int] = None,
    *,
    config: Optional[ClassifierConfig] = None,
) -> int:
    """
    Map an answer outcome to a quality rating in [1, 5].

    Incorrect answers are always 1. Correct answers are graded by latency:
    no timing is treated as "good" (4).
    """
    config = config or ClassifierConfig()
    if response_time_ms is not None and response_time_ms < 0:
        raise ValidationError("response_time_ms must be non-negative")

    if not is_correct:
        return 1
    if response_time_ms is None:
        return 4
    if response_time_ms < config.easy_below_ms:
        return 5
    if response_time_ms < config.good_below_ms:
        return 4
    return 3
