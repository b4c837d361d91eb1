from __future__ import annotations

import pytest

from src.srs.config import ClassifierConfig
from src.srs.errors import ValidationError
from src.srs.quality import classify_quality


@pytest.mark.parametrize(
    "response_time_ms, expected",
    [
        (0, 5),
        (4999, 5),
        (5000, 4),
        (9999, 4),
        (10000, 3),
        (60000, 3),
        (None, 4),
    ],
)
def test_correct_answers_are_graded_by_latency(response_time_ms, expected):
    assert classify_quality(True, response_time_ms) == expected


@pytest.mark.parametrize("response_time_ms", [None, 0, 3000, 20000])
def test_incorrect_answers_are_always_one(response_time_ms):
    assert classify_quality(False, response_time_ms) == 1


def test_negative_response_time_is_rejected():
    with pytest.raises(ValidationError):
        classify_quality(True, -1)


def test_thresholds_are_configurable():
    config = ClassifierConfig(easy_below_ms=1000, good_below_ms=2000)

    assert classify_quality(True, 999, config=config) == 5
    assert classify_quality(True, 1500, config=config) == 4
    assert classify_quality(True, 2000, config=config) == 3
