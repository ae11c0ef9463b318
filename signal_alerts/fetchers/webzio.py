"""Secondary news provider (Webz.io news API lite)."""

import logging
from typing import List, Optional

import requests

from ..errors import ProviderError

logger = logging.getLogger(__name__)

NAME = "webzio"
BASE_URL = "https://api.webz.io/newsApiLite"

# Terms whose plain query misses most of the relevant coverage
EXPANDED_QUERIES = {
    "jujitsu": 'jujitsu OR "jiu-jitsu" OR bjj OR "brazilian jiu-jitsu" OR "martial arts" OR grappling',
    "jiu-jitsu": 'jiu-jitsu OR jujitsu OR bjj OR "brazilian jiu-jitsu" OR "martial arts" OR grappling',
    "bjj": 'bjj OR jujitsu OR "jiu-jitsu" OR "brazilian jiu-jitsu" OR "martial arts" OR grappling',
    "brazilian jiu-jitsu": '"brazilian jiu-jitsu" OR jujitsu OR "jiu-jitsu" OR bjj OR "martial arts" OR grappling',
    "mma": 'mma OR "mixed martial arts" OR ufc OR fighting OR "cage fighting"',
    "boxing": 'boxing OR "boxing gloves" OR heavyweight OR championship OR "muhammad ali" OR "mike tyson"',
    "karate": 'karate OR "karate kid" OR "martial arts" OR "black belt" OR dojo',
    "taekwondo": 'taekwondo OR tkd OR "korean martial arts" OR "olympic sport" OR "black belt"',
    "wrestling": 'wrestling OR wwe OR "professional wrestling" OR grappling OR "freestyle wrestling"',
    "kickboxing": 'kickboxing OR "k-1" OR "muay thai" OR "striking martial art"',
}


def build_query(interests: List[str]) -> str:
    """Combine interests into one OR query, expanding known terms."""
    if not interests:
        return "news"
    if len(interests) == 1:
        return EXPANDED_QUERIES.get(interests[0].lower(), f'"{interests[0]}"')
    return " OR ".join(f'"{interest}"' for interest in interests)


def fetch(
    interests: List[str],
    limit: int = 30,
    api_key: Optional[str] = None,
    base_url: str = BASE_URL,
    timeout: float = 10,
) -> List[dict]:
    """Fetch raw posts matching the user's interests."""
    if not api_key:
        raise ProviderError(NAME, "Webz.io API key not configured")

    params = {
        "token": api_key,
        "q": build_query(interests),
        "size": limit,
        "sort": "crawled:desc",
    }
    try:
        response = requests.get(base_url, params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise ProviderError(NAME, f"request failed: {e}") from e
    except ValueError as e:
        raise ProviderError(NAME, f"invalid JSON response: {e}") from e

    if not isinstance(data, dict):
        raise ProviderError(NAME, f"unexpected response type: {type(data).__name__}")
    posts = data.get("posts") or []
    logger.debug(f"Fetched {len(posts)} raw posts from {NAME}")
    return posts
