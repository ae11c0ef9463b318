"""Echo Control: finding and grouping related articles."""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional

from .models import Signal

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ("source", "topic", "title", "keyword")

TITLE_SIMILARITY_THRESHOLD = 0.3

_WORD_SPLIT_RE = re.compile(r"\W+")

TOPIC_STOP_WORDS = {
    "about", "after", "before", "their", "these", "those", "where", "which",
    "while", "would", "could", "should", "there", "report", "update", "latest",
}


@dataclass
class ArticleGroup:
    primary: Signal
    related: List[Signal] = field(default_factory=list)
    topic: str = "General"

    @property
    def count(self) -> int:
        return len(self.related) + 1


def title_words(title: str) -> List[str]:
    return [w for w in _WORD_SPLIT_RE.split((title or "").lower()) if len(w) > 3]


def title_similarity(a: Signal, b: Signal) -> float:
    words_a = title_words(a.title)
    words_b = title_words(b.title)
    if not words_a or not words_b:
        return 0.0
    common = [w for w in words_a if w in words_b]
    return len(common) / max(len(words_a), len(words_b))


def _contains_keyword(signal: Signal, keyword: str) -> bool:
    return keyword.lower() in signal.text()


def are_related(a: Signal, b: Signal, group_by: str, custom_keywords: Optional[List[str]] = None) -> bool:
    """Whether two signals belong together under the chosen grouping."""
    if group_by == "source":
        return bool(a.source_name) and a.source_name == b.source_name
    if group_by == "title":
        return title_similarity(a, b) >= TITLE_SIMILARITY_THRESHOLD
    if group_by == "keyword":
        return any(
            _contains_keyword(a, kw) and _contains_keyword(b, kw)
            for kw in custom_keywords or []
            if kw
        )
    # "topic" and anything unrecognised group by shared tags
    tags_b = {t.lower() for t in b.tags or []}
    return any(t.lower() in tags_b for t in a.tags or [])


def find_related(
    signal: Signal,
    all_signals: List[Signal],
    group_by: str = "topic",
    custom_keywords: Optional[List[str]] = None,
    max_results: int = 3,
) -> List[Signal]:
    """
    Other signals related to ``signal``, in their existing feed order.

    The input signal itself is never included; at most ``max_results`` are
    returned.
    """
    related = []
    for other in all_signals:
        if len(related) >= max_results:
            break
        if other.id == signal.id:
            continue
        if are_related(signal, other, group_by, custom_keywords):
            related.append(other)

    if related:
        logger.debug(f"Found {len(related)} related articles for: {signal.title[:60]}")
    return related


def extract_common_topic(signals: List[Signal]) -> str:
    """Most frequent tag, else the most frequent meaningful title word."""
    if not signals:
        return "General"

    tag_counts = Counter(tag for s in signals for tag in s.tags or [])
    if tag_counts:
        return tag_counts.most_common(1)[0][0]

    words = [
        w for s in signals for w in _WORD_SPLIT_RE.split(s.title.lower())
        if len(w) > 4 and w not in TOPIC_STOP_WORDS
    ]
    if not words:
        return "General"
    word = Counter(words).most_common(1)[0][0]
    return word[:1].upper() + word[1:]


def group_similar_articles(
    signals: List[Signal],
    group_by: str = "topic",
    custom_keywords: Optional[List[str]] = None,
) -> List[ArticleGroup]:
    """
    Partition the feed into groups of related articles.

    Each signal lands in at most one group; the first signal of a group (in
    feed order) is its primary article. Signals with no relatives are left
    out.
    """
    groups = []
    assigned = set()
    for signal in signals:
        if signal.id in assigned:
            continue
        related = [
            other for other in signals
            if other.id != signal.id
            and other.id not in assigned
            and are_related(signal, other, group_by, custom_keywords)
        ]
        if not related:
            continue
        assigned.add(signal.id)
        assigned.update(other.id for other in related)
        groups.append(ArticleGroup(signal, related, extract_common_topic([signal] + related)))
    return groups
