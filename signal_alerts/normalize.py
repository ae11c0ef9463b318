"""Per-provider adapters that turn raw payload items into Signals."""

import hashlib
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser

from .errors import NormalizationError
from .models import Signal

logger = logging.getLogger(__name__)

# Ordered (substrings, tag) rules shared by the news providers
TOPIC_TAG_RULES = [
    (("tech", "ai", "technology"), "Tech"),
    (("crypto", "bitcoin", "blockchain"), "Crypto"),
    (("finance", "market", "stock"), "Finance"),
    (("health", "medical"), "Health"),
    (("sport", "football", "soccer"), "Sports"),
    (("politics", "government"), "Politics"),
    (("science", "research"), "Science"),
]

VERIFIED_DOMAINS = [
    "reuters.com", "bbc.com", "cnn.com", "nytimes.com", "theguardian.com",
    "washingtonpost.com", "wsj.com", "bloomberg.com", "apnews.com", "forbes.com",
    "techcrunch.com", "theverge.com", "wired.com", "arstechnica.com",
]

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: Any) -> datetime:
    """Parse a timestamp in any common format; unknown values become now."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Millisecond epoch values are what the store and JS clients emit
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            logger.warning(f"Failed to parse timestamp {value}: {e}, using current time")
            return utcnow()
    elif isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.parse(value)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Failed to parse date '{value}': {e}, using current time")
            return utcnow()
    else:
        return utcnow()

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def make_signal_id(provider: str, url: str, title: str) -> str:
    """Generate a stable ID for a signal within one pipeline run."""
    key = f"{provider}:{url}:{title}"
    return f"{provider}-{hashlib.sha256(key.encode()).hexdigest()[:16]}"


def topic_tags(text: str) -> List[str]:
    text = text.lower()
    return [tag for needles, tag in TOPIC_TAG_RULES if any(n in text for n in needles)]


def is_verified_source(site: Optional[str]) -> bool:
    if not site:
        return False
    return any(domain in site for domain in VERIFIED_DOMAINS)


def _first(raw: dict, *keys: str) -> Any:
    """Return the first non-empty value among keys; dotted keys descend into mappings."""
    for key in keys:
        value: Any = raw
        for part in key.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if value not in (None, ""):
            return value
    return None


def _require_title(raw: Any) -> str:
    if not isinstance(raw, dict):
        raise NormalizationError(f"expected a mapping, got {type(raw).__name__}")
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise NormalizationError("item has no title")
    return title.strip()


def _as_tags(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [str(t) for t in value if t]
    return []


def _as_score(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def normalize_ai(raw: dict, index: int = 0) -> Signal:
    """Items produced by the AI-personalized provider."""
    title = _require_title(raw)
    url = raw.get("source_url") or raw.get("url") or ""
    return Signal(
        id=str(raw.get("id") or make_signal_id("ai", url, title)),
        title=title,
        summary=raw.get("summary") or "",
        content=raw.get("content"),
        url=url,
        source_name=raw.get("source_name") or "",
        verified=bool(raw.get("verified", True)),
        tags=_as_tags(raw.get("tags")),
        relevance_score=0.9 - index * 0.05,
        timestamp=parse_date(raw.get("created_at")),
        image_url=raw.get("image_url"),
        provider="ai",
    )


def normalize_newsapi(raw: dict, index: int = 0) -> Signal:
    """Articles from the keyword-search news provider."""
    title = _require_title(raw)
    if title == "[Removed]":
        raise NormalizationError("article was removed upstream")

    source_name = _first(raw, "source.name") or "Unknown"
    description = raw.get("description") or ""
    tags = [source_name] if _first(raw, "source.name") else []
    tags.extend(topic_tags(f"{title} {description}"))
    url = raw.get("url") or ""

    return Signal(
        id=make_signal_id("newsapi", url, title),
        title=title,
        summary=description or raw.get("content") or "No description available",
        content=raw.get("content") or description,
        url=url,
        source_name=source_name,
        verified=True,
        tags=tags[:3],
        relevance_score=0.9 - raw.get("_rank", index) * 0.01,
        timestamp=parse_date(raw.get("publishedAt")),
        image_url=raw.get("urlToImage") or None,
        provider="newsapi",
    )


def extract_summary(text: str) -> str:
    """First three sentences of text, capped at 250 characters."""
    if not text:
        return "No description available"
    summary = " ".join(s.strip() for s in _SENTENCE_RE.findall(text)[:3])
    if len(summary) > 250:
        return summary[:250] + "..."
    return summary or text[:200] + "..."


def _webzio_image(raw: dict) -> Optional[str]:
    image = _first(raw, "thread.main_image")
    if image:
        return image
    persons = _first(raw, "entities.persons") or []
    if persons and isinstance(persons[0], dict) and persons[0].get("image"):
        return persons[0]["image"]
    media = raw.get("media") or []
    if media and isinstance(media[0], dict):
        return media[0].get("url")
    return None


def _webzio_tags(raw: dict) -> List[str]:
    tags = []
    section = _first(raw, "thread.section_title")
    if section:
        tags.append(section)
    entities = raw.get("entities")
    if not isinstance(entities, dict):
        entities = {}
    for org in (entities.get("organizations") or [])[:2]:
        if isinstance(org, dict) and org.get("name"):
            tags.append(org["name"])
    for loc in (entities.get("locations") or [])[:1]:
        if isinstance(loc, dict) and loc.get("name"):
            tags.append(loc["name"])
    tags.extend(topic_tags(f"{raw.get('title') or ''} {raw.get('text') or ''}"))

    unique = []
    for tag in tags:
        if tag not in unique:
            unique.append(tag)
    return unique[:5]


def normalize_webzio(raw: dict, index: int = 0) -> Signal:
    """Posts from the secondary news provider."""
    title = _require_title(raw)
    text = raw.get("text")
    if not text:
        raise NormalizationError("post has no text")

    site = _first(raw, "thread.site")
    published = parse_date(raw.get("published") or raw.get("crawled"))
    verified = is_verified_source(site)

    score = 0.7
    if verified:
        score += 0.2
    if utcnow() - published < timedelta(hours=24):
        score += 0.1
    url = raw.get("url") or _first(raw, "thread.url") or ""

    return Signal(
        id=make_signal_id("webzio", url, raw.get("uuid") or title),
        title=title,
        summary=extract_summary(text),
        content=text,
        url=url,
        source_name=site or raw.get("author") or "Unknown Source",
        verified=verified,
        tags=_webzio_tags(raw),
        relevance_score=min(score, 1.0),
        timestamp=published,
        image_url=_webzio_image(raw),
        provider="webzio",
    )


def normalize_record(raw: dict, index: int = 0, provider: str = "store") -> Signal:
    """Generic adapter for persisted rows and static records.

    Each canonical field is taken from the first present alias.
    """
    title = _require_title(raw)
    url = _first(raw, "url", "link", "article_url", "source_url") or ""
    source = _first(raw, "sourceName", "source_name", "source.name", "source")
    if isinstance(source, dict):
        source = source.get("name")
    return Signal(
        id=str(raw.get("id") or make_signal_id(provider, url, title)),
        title=title,
        summary=_first(raw, "summary", "description") or "",
        content=raw.get("content"),
        url=url,
        source_name=source or "",
        verified=bool(raw.get("verified", False)),
        tags=_as_tags(raw.get("tags")),
        relevance_score=_as_score(_first(raw, "relevanceScore", "relevance_score")),
        timestamp=parse_date(_first(raw, "timestamp", "created_at", "publishedAt", "published_at")),
        image_url=_first(raw, "imageUrl", "image_url", "urlToImage", "image"),
        liked=bool(raw.get("liked", False)),
        saved=bool(raw.get("saved", False)),
        provider=provider,
    )


def normalize_fallback(raw: dict, index: int = 0) -> Signal:
    return normalize_record(raw, index, provider="fallback")


NORMALIZERS: Dict[str, Callable[[dict, int], Signal]] = {
    "ai": normalize_ai,
    "newsapi": normalize_newsapi,
    "webzio": normalize_webzio,
    "store": normalize_record,
    "fallback": normalize_fallback,
}


def normalize_items(provider: str, raw_items: List[Any]) -> List[Signal]:
    """Normalize a provider's raw items, skipping malformed ones."""
    adapter = NORMALIZERS.get(provider, normalize_record)
    signals = []
    for index, raw in enumerate(raw_items):
        try:
            signals.append(adapter(raw, index))
        except NormalizationError as e:
            logger.warning(f"Skipping item {index} from {provider}: {e}")
        except (TypeError, AttributeError, ValueError, KeyError) as e:
            logger.warning(f"Skipping malformed item {index} from {provider}: {e}")
    logger.debug(f"Normalized {len(signals)}/{len(raw_items)} items from {provider}")
    return signals
