"""Rule-based parsing of free-text alert requests."""

import re
from typing import List, Pattern, Tuple

from .models import AlertEntities, ParsedRequest

# Ordered (pattern, label) tables. The first matching rule wins, so more
# specific rules must come first.

INTENT_RULES: List[Tuple[Pattern, str]] = [
    (re.compile(r"notify|alert|tell|let me know|inform|update", re.I), "create_alert"),
    (re.compile(r"when.*(?:release|drop|announce|launch)", re.I), "create_alert"),
    (re.compile(r"show|find|search|look for|get", re.I), "search"),
    (re.compile(r"summary|summarize|brief|overview", re.I), "summarize"),
    (re.compile(r"\?"), "question"),
]

ALERT_TYPE_RULES: List[Tuple[Pattern, str]] = [
    (re.compile(r"album|music|song|release|drop", re.I), "album_release"),
    (re.compile(r"product|announce|launch|unveil", re.I), "product_announcement"),
    (re.compile(r"earnings|quarterly|financial|report", re.I), "earnings_report"),
    (re.compile(r"price|stock|crypto|bitcoin|ethereum", re.I), "price_change"),
    (re.compile(r"event|concert|tour|conference", re.I), "event"),
    (re.compile(r"news|mention|article|story", re.I), "news_mention"),
]

ENTITY_RULES = {
    "artists": [
        re.compile(r"bts|blackpink|twice|exo|seventeen|itzy|aespa|newjeans|le sserafim|ive", re.I),
        re.compile(r"taylor swift|drake|beyonce|the weeknd|ariana grande", re.I),
    ],
    "companies": [
        re.compile(r"apple|google|microsoft|amazon|meta|facebook|tesla|spacex|netflix|disney", re.I),
        re.compile(r"samsung|lg|sony|nvidia|intel|amd|qualcomm", re.I),
    ],
    "products": [
        re.compile(r"iphone|ipad|macbook|airpods|apple watch|vision pro", re.I),
        re.compile(r"galaxy|pixel|surface|playstation|xbox|switch", re.I),
    ],
}

QUOTED_RE = re.compile(r"\"([^\"]+)\"|'([^']+)'")

STOP_WORDS = {
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "should",
    "can", "could", "may", "might", "must", "when", "me", "my", "about",
    "notify", "alert", "tell", "let", "know", "inform",
}

ALERT_TYPE_PHRASES = {
    "album_release": "album releases",
    "product_announcement": "product announcements",
    "earnings_report": "earnings reports",
    "price_change": "price changes",
    "event": "events",
    "news_mention": "news mentions",
}


def classify(text: str, rules: List[Tuple[Pattern, str]], default: str) -> str:
    for pattern, label in rules:
        if pattern.search(text):
            return label
    return default


def _title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


def _unique(values: List[str]) -> List[str]:
    unique = []
    for value in values:
        if value not in unique:
            unique.append(value)
    return unique


def extract_entities(query: str) -> AlertEntities:
    """Curated entity lists, plus quoted substrings as ad hoc topics."""
    entities = AlertEntities()
    for group, patterns in ENTITY_RULES.items():
        found = []
        for pattern in patterns:
            match = pattern.search(query)
            if match:
                found.append(_title_case(match.group(0)))
        setattr(entities, group, _unique(found))

    entities.topics = _unique(
        [double or single for double, single in QUOTED_RE.findall(query)]
    )
    return entities


def extract_keywords(query: str) -> List[str]:
    """Lowercased words longer than two characters that are not stop words."""
    words = re.sub(r"[^\w\s]", " ", query.lower()).split()
    return _unique([w for w in words if len(w) > 2 and w not in STOP_WORDS])


def parse_request(query: str) -> ParsedRequest:
    """Detect intent, entities, keywords and, for alerts, the alert type."""
    intent = classify(query, INTENT_RULES, "unknown")
    alert_type = None
    if intent == "create_alert":
        alert_type = classify(query, ALERT_TYPE_RULES, "general")

    return ParsedRequest(
        intent=intent,
        entities=extract_entities(query),
        keywords=extract_keywords(query),
        raw_query=query,
        alert_type=alert_type,
    )


def generate_description(parsed: ParsedRequest) -> str:
    """Human-readable summary of what an alert request watches for."""
    if parsed.intent != "create_alert":
        return parsed.raw_query

    entities = parsed.entities
    parts = [
        ", ".join(group)
        for group in (entities.artists, entities.companies, entities.products, entities.topics)
        if group
    ]
    description = "Alert for "
    if parts:
        description += " and ".join(parts)
    else:
        description += ", ".join(parsed.keywords[:3])

    phrase = ALERT_TYPE_PHRASES.get(parsed.alert_type or "")
    if phrase:
        description += f" {phrase}"
    return description
