"""Concurrent fetching from all source clients."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .errors import ProviderError
from .fetchers import fallback
from .models import Signal
from .normalize import normalize_items

logger = logging.getLogger(__name__)

# Fetch-degradation and dedup-survivor order
PROVIDER_PRIORITY = ["ai", "newsapi", "webzio", "store"]

DEFAULT_TIMEOUT = 10.0


@dataclass
class SourceClient:
    """One provider: a name and a callable returning raw items."""

    name: str
    fetch_raw: Callable[..., List[dict]]
    options: dict = field(default_factory=dict)

    def fetch(self, interests: List[str], limit: int) -> List[dict]:
        try:
            return self.fetch_raw(interests, limit, **self.options)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(self.name, f"unexpected error: {e}") from e


@dataclass
class FetchResult:
    provider: str
    signals: List[Signal] = field(default_factory=list)
    error: Optional[ProviderError] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def _priority(name: str) -> int:
    try:
        return PROVIDER_PRIORITY.index(name)
    except ValueError:
        return len(PROVIDER_PRIORITY)


def _run_client(client: SourceClient, interests: List[str], limit: int) -> FetchResult:
    start = time.monotonic()
    raw_items = client.fetch(interests, limit)
    signals = normalize_items(client.name, raw_items)
    return FetchResult(client.name, signals, elapsed=time.monotonic() - start)


def fetch_all(
    clients: List[SourceClient],
    interests: List[str],
    limit: int = 20,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[FetchResult]:
    """
    Fetch and normalize from every client concurrently.

    Each client runs in its own worker under the same deadline. A client that
    raises or misses the deadline contributes an empty result carrying the
    error. Results come back in provider-priority order regardless of the
    order they finished in.
    """
    if not clients:
        return []

    results = {}
    executor = ThreadPoolExecutor(max_workers=len(clients))
    try:
        future_to_client = {
            executor.submit(_run_client, client, interests, limit): client
            for client in clients
        }
        done, not_done = wait(future_to_client, timeout=timeout)

        for future in done:
            client = future_to_client[future]
            try:
                result = future.result()
                logger.info(f"  ✓ {client.name}: {len(result.signals)} signals ({result.elapsed:.2f}s)")
            except ProviderError as e:
                logger.error(f"  ✗ {client.name}: {e.message}")
                result = FetchResult(client.name, error=e)
            except Exception as e:
                logger.error(f"  ✗ {client.name}: {e}")
                result = FetchResult(client.name, error=ProviderError(client.name, str(e)))
            results[client.name] = result

        for future in not_done:
            client = future_to_client[future]
            future.cancel()
            logger.warning(f"  ✗ {client.name}: timed out after {timeout}s")
            results[client.name] = FetchResult(
                client.name, error=ProviderError(client.name, f"timed out after {timeout}s")
            )
    finally:
        # Slow clients are abandoned rather than awaited
        executor.shutdown(wait=False, cancel_futures=True)

    ordered = sorted(clients, key=lambda c: _priority(c.name))
    return [results[client.name] for client in ordered]


def fallback_signals(records: Optional[List[dict]] = None, limit: int = 20) -> List[Signal]:
    return normalize_items(fallback.NAME, fallback.fetch([], limit, signals=records))


def collect_signals(
    clients: List[SourceClient],
    interests: List[str],
    limit: int = 20,
    timeout: float = DEFAULT_TIMEOUT,
    fallback_records: Optional[List[dict]] = None,
):
    """
    Fetch from all clients and concatenate in priority order.

    When every client fails, or none of them produced a usable signal, the
    static fallback set is returned instead.

    Returns:
        Tuple of (signals, results, used_fallback)
    """
    results = fetch_all(clients, interests, limit, timeout)
    signals = [signal for result in results for signal in result.signals]
    if signals:
        return signals, results, False

    if results and all(not result.ok for result in results):
        logger.warning("All providers failed, using static fallback signals")
    else:
        logger.warning("Providers returned no signals, using static fallback signals")
    return fallback_signals(fallback_records, limit), results, True
