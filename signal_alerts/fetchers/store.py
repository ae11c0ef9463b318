"""Persisted-signal provider reading from the local store."""

import logging
from typing import List

from ..errors import PersistenceError, ProviderError
from ..storage import Storage

logger = logging.getLogger(__name__)

NAME = "store"


def fetch(interests: List[str], limit: int = 20, storage: Storage = None) -> List[dict]:
    """Most recent persisted signals as raw records."""
    if storage is None:
        raise ProviderError(NAME, "no storage configured")
    try:
        rows = storage.get_signals(limit)
    except PersistenceError as e:
        raise ProviderError(NAME, str(e)) from e
    logger.debug(f"Loaded {len(rows)} persisted signals")
    return rows
