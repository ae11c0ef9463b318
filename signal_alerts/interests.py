"""Matching signals against a user's declared interests."""

from typing import List, Optional

from .models import Signal


def _interest_hits(signal: Signal, interest: str) -> bool:
    needle = interest.lower()
    if not needle:
        return False
    for tag in signal.tags or []:
        tag = tag.lower()
        if needle in tag or (tag and tag in needle):
            return True
    return needle in signal.text()


def matched_interest(signal: Signal, interests: List[str]) -> Optional[str]:
    """
    Return the first interest, in declared order, that the signal matches.

    An interest matches when a tag contains it (or it contains a tag),
    case-insensitively, or when the title and summary contain it.
    """
    for interest in interests or []:
        if _interest_hits(signal, interest):
            return interest
    return None


def matches(signal: Signal, interests: List[str]) -> bool:
    return matched_interest(signal, interests) is not None


def filter_by_interests(signals: List[Signal], interests: List[str]) -> List[Signal]:
    if not interests:
        return []
    return [signal for signal in signals if matches(signal, interests)]
