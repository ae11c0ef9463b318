"""Feed ordering."""

from functools import cmp_to_key
from typing import List

from .models import Signal

# Scores closer than this are treated as tied
SCORE_TOLERANCE = 0.1


def compare_signals(a: Signal, b: Signal) -> int:
    """Higher relevance first when the gap is decisive, otherwise newer first."""
    score_a = a.relevance_score or 0.0
    score_b = b.relevance_score or 0.0
    if abs(score_a - score_b) > SCORE_TOLERANCE:
        return -1 if score_a > score_b else 1

    if a.timestamp > b.timestamp:
        return -1
    if a.timestamp < b.timestamp:
        return 1
    return 0


def rank_signals(signals: List[Signal]) -> List[Signal]:
    """Return a new list in feed order; the sort is stable."""
    return sorted(signals, key=cmp_to_key(compare_signals))
