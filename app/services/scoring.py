"""Composite ranking score.

    composite = 0.60 * avg_score + 0.30 * accuracy + 10 * ln(1 + attempts)

Score and accuracy carry 90% of the weight; the logarithmic attempts term
rewards engagement with diminishing returns so volume cannot outweigh quality.

The result is rounded to SCORE_PRECISION (4) decimal places, so it is
strictly increasing in each input only for steps that move the raw score by
at least 1e-4; smaller steps can round to the same value.
"""
import math
from typing import Optional

from app.core.constants import ACCURACY_WEIGHT, ATTEMPTS_WEIGHT, SCORE_PRECISION, SCORE_WEIGHT


def _non_negative(name: str, value: Optional[float]) -> float:
    if value is None:
        return 0.0
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be a non-negative finite number, got {value!r}")
    return value


def composite_score(avg_score_pct: Optional[float], accuracy_pct: Optional[float], attempts: Optional[int]) -> float:
    avg_score_pct = _non_negative("avg_score_pct", avg_score_pct)
    accuracy_pct = _non_negative("accuracy_pct", accuracy_pct)
    attempts = _non_negative("attempts", attempts)

    score = (
        SCORE_WEIGHT * avg_score_pct
        + ACCURACY_WEIGHT * accuracy_pct
        + ATTEMPTS_WEIGHT * math.log1p(attempts)
    )
    return round(score, SCORE_PRECISION)
