"""Interest-driven notification generation with a per-user rate limit."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .errors import PersistenceError
from .interests import matched_interest
from .models import Notification, Signal, UserInterestProfile
from .normalize import utcnow
from .storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = timedelta(hours=1)
URGENT_TAG_WORDS = ("breaking", "urgent")


def determine_urgency(signal: Signal) -> str:
    """
    Map a signal to an urgency tier.

    high: relevance above 0.9, or a tag mentioning breaking/urgent
    medium: relevance above 0.7
    low: everything else
    """
    score = signal.relevance_score or 0.0
    tags = [tag.lower() for tag in signal.tags or []]
    if score > 0.9 or any(word in tag for tag in tags for word in URGENT_TAG_WORDS):
        return "high"
    if score > 0.7:
        return "medium"
    return "low"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def build_notification(signal: Signal, interests: List[str], now: datetime) -> Notification:
    interest = matched_interest(signal, interests)
    if interest:
        title = f"{_capitalize(interest)} Update"
        category = interest
    else:
        title = "New Signal"
        category = signal.tags[0] if signal.tags else "General"

    return Notification(
        id=f"notif_{signal.id}_{int(now.timestamp() * 1000)}",
        title=title,
        message=signal.summary or signal.title or "No content available",
        category=category,
        urgency=determine_urgency(signal),
        timestamp=now,
        read=False,
        signal_id=signal.id,
    )


def dedupe_by_id(notifications: List[Notification]) -> List[Notification]:
    seen = set()
    unique = []
    for notification in notifications:
        if notification.id in seen:
            continue
        seen.add(notification.id)
        unique.append(notification)
    return unique


class NotificationGenerator:
    """Turns newly relevant signals into notifications, at most once per window."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        rate_limit: timedelta = DEFAULT_RATE_LIMIT,
        breaking_only: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.rate_limit = rate_limit
        self.breaking_only = breaking_only
        self.clock = clock

    def _rate_limited(self, user_id: str, now: datetime) -> bool:
        if self.storage is None:
            return False
        try:
            last = self.storage.get_last_notification_gen_time(user_id)
        except PersistenceError as e:
            logger.error(f"Error reading last generation time for {user_id}: {e}")
            return False
        return last is not None and now - last < self.rate_limit

    def generate(
        self, profile: UserInterestProfile, candidate_signals: List[Signal], save: bool = True
    ) -> List[Notification]:
        """
        Generate notifications for signals matching the user's interests.

        Returns an empty list when the user has no interests, there are no
        candidates, or the previous generation was less than one rate-limit
        window ago. A successful non-empty generation records the current
        time as the new window start and stores the notifications; storage
        failures are logged and the generated list is still returned.
        """
        if not profile.interests:
            logger.debug(f"No interests for {profile.user_id}, skipping notification generation")
            return []
        if not candidate_signals:
            logger.debug("No signals provided, skipping notification generation")
            return []

        now = self.clock()
        if self._rate_limited(profile.user_id, now):
            logger.info("Skipping notification generation - too soon since last generation")
            return []

        notifications = []
        for signal in candidate_signals:
            try:
                if matched_interest(signal, profile.interests) is None:
                    continue
                notification = build_notification(signal, profile.interests, now)
            except (AttributeError, TypeError, ValueError) as e:
                logger.error(f"Error processing signal {getattr(signal, 'id', '?')}: {e}")
                continue

            if self.breaking_only and notification.urgency == "low":
                continue
            notifications.append(notification)

        notifications = dedupe_by_id(notifications)
        if not notifications:
            logger.info("No personalized notifications generated for current signals")
            return []

        logger.info(f"Generated {len(notifications)} notifications for {profile.user_id}")
        if self.storage is not None:
            try:
                self.storage.set_last_notification_gen_time(profile.user_id, now)
            except PersistenceError as e:
                logger.error(f"Error recording generation time: {e}")
            if save:
                self.save(profile.user_id, notifications)
        return notifications

    def save(self, user_id: str, notifications: List[Notification]):
        if not user_id or not notifications or self.storage is None:
            return
        try:
            self.storage.insert_notifications(user_id, notifications)
        except PersistenceError as e:
            logger.error(f"Error saving notifications: {e}")

    def daily_digest(self, profile: UserInterestProfile, signals: List[Signal]) -> Optional[Notification]:
        """Single low-urgency summary of the top five interest matches."""
        top = sorted(
            (s for s in signals if matched_interest(s, profile.interests)),
            key=lambda s: s.relevance_score or 0.0,
            reverse=True,
        )[:5]
        if not top:
            return None

        now = self.clock()
        return Notification(
            id=f"digest_{int(now.timestamp() * 1000)}",
            title="Your Daily Digest",
            message=(
                f"{len(top)} signals today from your interests: "
                f"{', '.join(profile.interests[:3])}"
            ),
            category="Digest",
            urgency="low",
            timestamp=now,
        )

    def breaking_news(self, signal: Signal) -> Notification:
        now = self.clock()
        return Notification(
            id=f"breaking_{signal.id}_{int(now.timestamp() * 1000)}",
            title="Breaking News",
            message=signal.title or "No title available",
            category="Breaking",
            urgency="high",
            timestamp=now,
            signal_id=signal.id,
        )


def merge_notifications(
    generated: List[Notification], persisted: List[Notification]
) -> List[Notification]:
    """Combine fresh and stored notifications, unique by id, newest first."""
    combined = dedupe_by_id(list(generated) + list(persisted))
    return sorted(combined, key=lambda n: n.timestamp, reverse=True)


def notification_summary(notifications: List[Notification]) -> Dict[str, int]:
    summary = {"total": len(notifications), "unread": 0, "high": 0, "medium": 0, "low": 0}
    for notification in notifications:
        if not notification.read:
            summary["unread"] += 1
        if notification.urgency in summary:
            summary[notification.urgency] += 1
    return summary
