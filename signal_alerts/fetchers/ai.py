"""AI-personalized provider backed by the Gemini generateContent API."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

import requests

from ..errors import ProviderError

logger = logging.getLogger(__name__)

NAME = "ai"
BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent"

_FENCE_RE = re.compile(r"```(?:json)?\n?")

PROMPT_TEMPLATE = """You are a news curator for a personalized news app.

USER PREFERENCES:
- Interests: {interests}
- Language: {language}
- Date: {date}

Generate {limit} highly relevant news articles from the last 24-48 hours based
on the user's interests. Prioritize breaking news and significant
developments, cover different aspects of the interests, and use credible
sources only.

Return ONLY a JSON array where each element has the keys:
"id", "title", "summary", "content", "source_name", "source_url",
"image_url", "tags", "verified", "priority", "category", "created_at"
(created_at as ISO 8601, e.g. "{now}").
"""


def build_prompt(interests: List[str], limit: int, language: str = "en") -> str:
    now = datetime.now(timezone.utc)
    return PROMPT_TEMPLATE.format(
        interests=", ".join(interests) if interests else "general news",
        language=language,
        date=now.date().isoformat(),
        limit=limit,
        now=now.isoformat(),
    )


def parse_response_text(text: str) -> List[dict]:
    """Parse the generated JSON, tolerating a surrounding code fence."""
    clean = text.strip()
    if clean.startswith("```"):
        clean = _FENCE_RE.sub("", clean).strip()
    try:
        parsed = json.loads(clean)
    except ValueError as e:
        logger.debug(f"Raw AI response: {text[:500]}")
        raise ProviderError(NAME, f"Failed to parse AI response: {e}") from e
    return parsed if isinstance(parsed, list) else [parsed]


def fetch(
    interests: List[str],
    limit: int = 20,
    api_key: Optional[str] = None,
    language: str = "en",
    base_url: str = BASE_URL,
    timeout: float = 10,
) -> List[dict]:
    """Ask the model for a curated list of articles for the given interests."""
    if not api_key:
        raise ProviderError(NAME, "Gemini API key not configured")

    body = {
        "contents": [{"parts": [{"text": build_prompt(interests, limit, language)}]}],
        "generationConfig": {
            "temperature": 0.7,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 8192,
        },
    }
    try:
        response = requests.post(
            base_url,
            params={"key": api_key},
            json=body,
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise ProviderError(NAME, f"request failed: {e}") from e
    except ValueError as e:
        raise ProviderError(NAME, f"invalid JSON response: {e}") from e

    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    if not text:
        raise ProviderError(NAME, "No content generated")

    items = parse_response_text(text)
    logger.debug(f"Fetched {len(items)} raw items from {NAME}")
    return items
