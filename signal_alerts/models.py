"""Data models for signals, notifications and custom alerts."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

URGENCY_LEVELS = ("low", "medium", "high")

ALERT_TYPES = (
    "album_release",
    "product_announcement",
    "earnings_report",
    "price_change",
    "event",
    "news_mention",
    "general",
)

ENTITY_GROUPS = ("artists", "companies", "products", "people", "topics")


@dataclass
class Signal:
    """A normalized news item from any provider."""

    id: str
    title: str
    summary: str
    url: str
    source_name: str
    timestamp: datetime
    relevance_score: float = 0.0
    content: Optional[str] = None
    verified: bool = False
    tags: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    liked: bool = False
    saved: bool = False
    provider: str = ""  # which source client produced it

    def text(self) -> str:
        """Lowercased title and summary, used for interest matching."""
        return f"{self.title or ''} {self.summary or ''}".lower()


@dataclass
class Interaction:
    """Persisted like/save state for one (user, signal) pair."""

    signal_id: str
    liked: bool = False
    saved: bool = False


@dataclass
class UserInterestProfile:
    """Interests are kept in the user's declared order."""

    user_id: str
    interests: List[str] = field(default_factory=list)
    custom_keywords: List[str] = field(default_factory=list)


@dataclass
class Notification:
    id: str
    title: str
    message: str
    category: str
    urgency: str  # "low" | "medium" | "high"
    timestamp: datetime
    read: bool = False
    signal_id: Optional[str] = None


@dataclass
class AlertEntities:
    """Named entity sets extracted from an alert request."""

    artists: List[str] = field(default_factory=list)
    companies: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {name: list(getattr(self, name)) for name in ENTITY_GROUPS if getattr(self, name)}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AlertEntities":
        data = data or {}
        return cls(**{name: list(data.get(name) or []) for name in ENTITY_GROUPS})


@dataclass
class ParsedRequest:
    """Structured result of parsing a free-text user request."""

    intent: str  # "create_alert" | "search" | "summarize" | "question" | "unknown"
    entities: AlertEntities
    keywords: List[str]
    raw_query: str
    alert_type: Optional[str] = None


@dataclass
class CustomAlert:
    id: str
    user_id: str
    type: str
    title: str
    description: str
    keywords: List[str] = field(default_factory=list)
    entities: AlertEntities = field(default_factory=AlertEntities)
    is_active: bool = True
    created_at: Optional[datetime] = None
    triggered_count: int = 0
    last_triggered: Optional[datetime] = None


@dataclass
class AlertMatch:
    alert_id: str
    signal_id: str
    match_score: float
    matched_keywords: List[str] = field(default_factory=list)
