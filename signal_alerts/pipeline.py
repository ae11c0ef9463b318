"""One feed refresh: fetch, normalize, dedupe, merge, rank, notify."""

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from .aggregator import DEFAULT_TIMEOUT, FetchResult, SourceClient, collect_signals
from .alerts import CustomAlertService
from .dedup import dedupe_signals
from .errors import PersistenceError
from .fetchers import ai, newsapi, store, webzio
from .interactions import load_interactions, merge_interactions
from .models import AlertMatch, Notification, Signal, UserInterestProfile
from .notifications import NotificationGenerator
from .ranking import rank_signals
from .storage import Storage

logger = logging.getLogger(__name__)

# provider name -> (fetch function, environment variable holding its key)
PROVIDERS = {
    ai.NAME: (ai.fetch, "GEMINI_API_KEY"),
    newsapi.NAME: (newsapi.fetch, "NEWS_API_KEY"),
    webzio.NAME: (webzio.fetch, "WEBZIO_API_KEY"),
    store.NAME: (store.fetch, None),
}


@dataclass
class RefreshContext:
    """Per-user state for one refresh, passed explicitly instead of held globally."""

    profile: UserInterestProfile
    clients: List[SourceClient]
    storage: Optional[Storage] = None
    limit: int = 20
    timeout: float = DEFAULT_TIMEOUT
    fallback_records: Optional[List[dict]] = None
    notifier: Optional[NotificationGenerator] = None
    alert_service: Optional[CustomAlertService] = None
    persist_signals: bool = True


@dataclass
class FeedResult:
    signals: List[Signal] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)
    alert_matches: List[AlertMatch] = field(default_factory=list)
    alert_notifications: List[Notification] = field(default_factory=list)
    fetch_results: List[FetchResult] = field(default_factory=list)
    used_fallback: bool = False
    duration: float = 0.0


def build_clients(
    providers_config: dict,
    storage: Optional[Storage] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[SourceClient]:
    """Create source clients for every enabled provider in the config."""
    clients = []
    for name, (fetch, key_env) in PROVIDERS.items():
        options = dict(providers_config.get(name) or {})
        if not options.pop("enabled", False):
            continue

        if name == store.NAME:
            clients.append(SourceClient(name, fetch, {"storage": storage}))
            continue

        api_key = options.pop("api_key", None) or (os.environ.get(key_env) if key_env else None)
        options["api_key"] = api_key
        options.setdefault("timeout", timeout)
        clients.append(SourceClient(name, fetch, options))

    logger.debug(f"Configured providers: {[c.name for c in clients]}")
    return clients


def build_feed(
    clients: List[SourceClient],
    profile: UserInterestProfile,
    storage: Optional[Storage] = None,
    limit: int = 20,
    timeout: float = DEFAULT_TIMEOUT,
    fallback_records: Optional[List[dict]] = None,
):
    """
    Produce the ranked feed for a user.

    Returns:
        Tuple of (ranked signals, fetch results, used_fallback)
    """
    signals, results, used_fallback = collect_signals(
        clients, profile.interests, limit, timeout, fallback_records
    )
    unique = dedupe_signals(signals)
    merged = merge_interactions(unique, load_interactions(storage, profile.user_id))
    return rank_signals(merged), results, used_fallback


def _persist(storage: Storage, signals: List[Signal]):
    saved = 0
    for signal in signals:
        if signal.provider in (store.NAME, "fallback"):
            continue
        try:
            storage.upsert_signal(signal)
            saved += 1
        except PersistenceError as e:
            logger.error(f"Error saving signal {signal.id}: {e}")
            return
    logger.debug(f"Persisted {saved} signals")


def run_refresh(context: RefreshContext) -> FeedResult:
    """Run the whole pipeline for one user-triggered refresh."""
    start = time.monotonic()
    profile = context.profile

    logger.info("=" * 60)
    logger.info(f"Refreshing feed for {profile.user_id or 'anonymous user'}")
    logger.info("=" * 60)

    ranked, results, used_fallback = build_feed(
        context.clients,
        profile,
        context.storage,
        context.limit,
        context.timeout,
        context.fallback_records,
    )
    result = FeedResult(signals=ranked, fetch_results=results, used_fallback=used_fallback)

    if context.storage is not None and context.persist_signals and not used_fallback:
        _persist(context.storage, ranked)

    if context.notifier is not None:
        result.notifications = context.notifier.generate(profile, ranked)

    if context.alert_service is not None and profile.user_id:
        result.alert_matches, result.alert_notifications = context.alert_service.process_signals(
            profile.user_id, ranked
        )

    result.duration = time.monotonic() - start
    failed = [r.provider for r in results if not r.ok]

    logger.info("=" * 60)
    logger.info("Refresh complete")
    logger.info(f"Duration: {result.duration:.2f}s")
    logger.info(f"Providers failed: {', '.join(failed) if failed else 'none'}")
    logger.info(f"Feed: {len(ranked)}{' (fallback)' if used_fallback else ''}")
    logger.info(f"Notifications: {len(result.notifications)}")
    logger.info(f"Alert matches: {len(result.alert_matches)}")
    logger.info("=" * 60)
    return result


def make_context(config: dict, storage: Optional[Storage], user_id: Optional[str] = None) -> RefreshContext:
    """Build a refresh context from the loaded YAML config."""
    app = config.get("app") or {}
    user = config.get("user") or {}
    timeout = float(app.get("fetch_timeout", DEFAULT_TIMEOUT))

    profile = UserInterestProfile(
        user_id=user_id or app.get("user_id") or "local",
        interests=list(user.get("interests") or []),
        custom_keywords=list(user.get("custom_keywords") or []),
    )
    notifier = NotificationGenerator(
        storage,
        rate_limit=timedelta(minutes=float(app.get("rate_limit_minutes", 60))),
        breaking_only=bool(app.get("breaking_only", False)),
    )
    return RefreshContext(
        profile=profile,
        clients=build_clients(config.get("providers") or {}, storage, timeout),
        storage=storage,
        limit=int(app.get("feed_limit", 20)),
        timeout=timeout,
        fallback_records=config.get("fallback"),
        notifier=notifier,
        alert_service=CustomAlertService(storage) if storage is not None else None,
    )
