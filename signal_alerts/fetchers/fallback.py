"""Static signal set shown when every live provider fails."""

from typing import List, Optional

NAME = "fallback"

DEFAULT_SIGNALS = [
    {
        "id": "fallback-1",
        "title": "Chipmakers race to expand AI data center capacity",
        "summary": "Major semiconductor firms announced new fabrication plans aimed at AI workloads.",
        "sourceName": "Reuters",
        "verified": True,
        "tags": ["Tech", "AI"],
        "url": "https://www.reuters.com/technology/",
        "relevanceScore": 0.8,
    },
    {
        "id": "fallback-2",
        "title": "Central banks signal a cautious path on interest rates",
        "summary": "Policymakers said future decisions will depend on incoming inflation data.",
        "sourceName": "Bloomberg",
        "verified": True,
        "tags": ["Finance"],
        "url": "https://www.bloomberg.com/markets",
        "relevanceScore": 0.75,
    },
    {
        "id": "fallback-3",
        "title": "New study links regular exercise to better sleep quality",
        "summary": "Researchers followed thousands of adults over five years.",
        "sourceName": "BBC",
        "verified": True,
        "tags": ["Health", "Science"],
        "url": "https://www.bbc.com/news/health",
        "relevanceScore": 0.7,
    },
    {
        "id": "fallback-4",
        "title": "Renewable energy investment hits a record high",
        "summary": "Solar and wind projects drew the largest share of new capital this year.",
        "sourceName": "The Guardian",
        "verified": True,
        "tags": ["Climate", "Energy"],
        "url": "https://www.theguardian.com/environment",
        "relevanceScore": 0.65,
    },
]


def fetch(interests: List[str], limit: int = 20, signals: Optional[List[dict]] = None) -> List[dict]:
    """Return the configured static set, or the built-in one."""
    records = signals if signals else DEFAULT_SIGNALS
    return [dict(record) for record in records[:limit]]
