"""Title-based deduplication of normalized signals."""

import logging
from typing import Iterable, List

from .models import Signal

logger = logging.getLogger(__name__)


def normalize_title(title: str) -> str:
    return (title or "").strip().lower()


def dedupe_signals(signals: Iterable[Signal]) -> List[Signal]:
    """
    Keep the first signal for each normalized title.

    Input is expected in provider-priority order, so when two providers carry
    the same article the copy from the higher-priority provider survives.
    """
    seen = set()
    unique = []
    dropped = 0
    for signal in signals:
        key = normalize_title(signal.title)
        if key in seen:
            logger.debug(f"Skipping duplicate from {signal.provider or 'unknown'}: {signal.title[:50]}...")
            dropped += 1
            continue
        seen.add(key)
        unique.append(signal)

    if dropped:
        logger.info(f"Dropped {dropped} duplicate signals")
    return unique
