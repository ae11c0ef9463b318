"""Keyword-search news provider (NewsAPI)."""

import logging
from typing import List, Optional

import requests

from ..errors import ProviderError

logger = logging.getLogger(__name__)

NAME = "newsapi"
BASE_URL = "https://newsapi.org/v2"


def _get_articles(url: str, params: dict, timeout: float) -> List[dict]:
    try:
        response = requests.get(url, params=params, timeout=timeout)
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise ProviderError(NAME, f"request failed: {e}") from e
    except ValueError as e:
        raise ProviderError(NAME, f"invalid JSON response: {e}") from e

    if not isinstance(data, dict):
        raise ProviderError(NAME, f"unexpected response type: {type(data).__name__}")
    if data.get("status") != "ok":
        raise ProviderError(NAME, data.get("message") or "Failed to fetch news")
    return data.get("articles") or []


def fetch_top_headlines(
    api_key: str,
    country: str = "us",
    category: Optional[str] = None,
    page_size: int = 20,
    base_url: str = BASE_URL,
    timeout: float = 10,
) -> List[dict]:
    params = {"country": country, "pageSize": page_size, "apiKey": api_key}
    if category:
        params["category"] = category
    return _get_articles(f"{base_url}/top-headlines", params, timeout)


def search_news(
    api_key: str,
    query: str,
    sort_by: str = "publishedAt",
    page_size: int = 20,
    base_url: str = BASE_URL,
    timeout: float = 10,
) -> List[dict]:
    params = {"q": query, "sortBy": sort_by, "pageSize": page_size, "apiKey": api_key}
    return _get_articles(f"{base_url}/everything", params, timeout)


def fetch(
    interests: List[str],
    limit: int = 20,
    api_key: Optional[str] = None,
    base_url: str = BASE_URL,
    timeout: float = 10,
) -> List[dict]:
    """
    Fetch raw articles for the user's interests.

    One search is issued per interest; a failing search contributes nothing.
    Without interests, top headlines are returned instead.

    Each article carries a ``_rank`` key holding its position within its own
    response, which the normalizer turns into a relevance score.
    """
    if not api_key:
        raise ProviderError(NAME, "News API key not configured")

    if not interests:
        batches = [fetch_top_headlines(api_key, page_size=limit, base_url=base_url, timeout=timeout)]
    else:
        batches = []
        for interest in interests:
            try:
                batches.append(
                    search_news(api_key, interest, page_size=limit, base_url=base_url, timeout=timeout)
                )
            except ProviderError as e:
                logger.warning(f"Search for '{interest}' failed: {e}")
        if not batches:
            raise ProviderError(NAME, "all interest searches failed")

    items = []
    for batch in batches:
        for rank, article in enumerate(batch):
            if isinstance(article, dict):
                items.append(dict(article, _rank=rank))
    logger.debug(f"Fetched {len(items)} raw articles from {NAME}")
    return items
