"""User-defined custom alerts: creation, management and matching."""

import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .errors import PersistenceError
from .models import AlertMatch, CustomAlert, Notification, ParsedRequest, Signal
from .normalize import utcnow
from .parser import generate_description
from .storage import Storage

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.6
ALERT_TITLE_PREFIX = "🎯"

# Entity groups that count as scoring criteria, in evaluation order
SCORED_ENTITY_GROUPS = ("artists", "companies", "products", "topics")


def signal_text(signal: Signal) -> str:
    parts = [signal.title or "", signal.summary or "", signal.content or "", " ".join(signal.tags or [])]
    return " ".join(parts).lower()


def score_alert(signal: Signal, alert: CustomAlert) -> Tuple[float, int, List[str]]:
    """
    Score a signal against one alert's criteria.

    Every non-empty criterion group counts once towards the required total.
    The keyword group contributes the fraction of its keywords found; an
    entity group contributes 1 if any member is found.

    Returns:
        Tuple of (match_score, required_groups, matched_terms)
    """
    text = signal_text(signal)
    score = 0.0
    required = 0
    matched: List[str] = []

    if alert.keywords:
        required += 1
        hits = [kw for kw in alert.keywords if kw.lower() in text]
        if hits:
            score += len(hits) / len(alert.keywords)
            matched.extend(hits)

    for group in SCORED_ENTITY_GROUPS:
        members = getattr(alert.entities, group)
        if not members:
            continue
        required += 1
        hits = [member for member in members if member.lower() in text]
        if hits:
            score += 1
            matched.extend(hits)

    return score, required, matched


def match_alert(signal: Signal, alert: CustomAlert) -> Optional[AlertMatch]:
    score, required, matched = score_alert(signal, alert)
    if required == 0 or score / required < MATCH_THRESHOLD:
        return None
    return AlertMatch(
        alert_id=alert.id,
        signal_id=signal.id,
        match_score=score / required,
        matched_keywords=matched,
    )


def create_notification_from_match(alert: CustomAlert, signal: Signal, now: datetime) -> Notification:
    return Notification(
        id=f"alert_{alert.id}_{signal.id}",
        title=f"{ALERT_TITLE_PREFIX} {alert.title}",
        message=signal.title,
        category="Custom Alert",
        urgency="high",
        timestamp=now,
        signal_id=signal.id,
    )


def alert_title(parsed: ParsedRequest) -> str:
    entities = parsed.entities
    for group in (entities.artists, entities.companies, entities.products, entities.topics):
        if group:
            return group[0]
    return " ".join(parsed.keywords[:2]) or "Custom Alert"


class CustomAlertService:
    """Creates, stores and evaluates custom alerts for users."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.clock = clock

    def create_alert(self, user_id: str, parsed: ParsedRequest) -> CustomAlert:
        if parsed.intent != "create_alert":
            raise ValueError("Cannot create alert from non-alert intent")

        alert = CustomAlert(
            id=uuid.uuid4().hex,
            user_id=user_id,
            type=parsed.alert_type or "general",
            title=alert_title(parsed),
            description=generate_description(parsed),
            keywords=list(parsed.keywords),
            entities=parsed.entities,
            is_active=True,
            created_at=self.clock(),
        )
        try:
            self.storage.save_alert(alert)
        except PersistenceError as e:
            logger.error(f"Error saving alert '{alert.title}': {e}")
            return alert
        logger.info(f"Created alert '{alert.title}' ({alert.type}) for {user_id}")
        return alert

    def get_user_alerts(self, user_id: str) -> List[CustomAlert]:
        try:
            return self.storage.get_user_alerts(user_id)
        except PersistenceError as e:
            logger.error(f"Error getting user alerts: {e}")
            return []

    def get_active_alerts(self, user_id: str) -> List[CustomAlert]:
        return [alert for alert in self.get_user_alerts(user_id) if alert.is_active]

    def toggle_alert(self, alert_id: str) -> Optional[CustomAlert]:
        try:
            alert = self.storage.get_alert(alert_id)
        except PersistenceError as e:
            logger.error(f"Error loading alert {alert_id}: {e}")
            return None
        if alert is None:
            return None
        alert.is_active = not alert.is_active
        try:
            self.storage.save_alert(alert)
        except PersistenceError as e:
            logger.error(f"Error saving alert {alert_id}: {e}")
        return alert

    def delete_alert(self, alert_id: str) -> bool:
        try:
            self.storage.delete_alert(alert_id)
        except PersistenceError as e:
            logger.error(f"Error deleting alert {alert_id}: {e}")
            return False
        return True

    def get_alert_stats(self, user_id: str) -> Dict[str, int]:
        alerts = self.get_user_alerts(user_id)
        return {
            "total": len(alerts),
            "active": sum(1 for a in alerts if a.is_active),
            "triggered": sum(1 for a in alerts if a.triggered_count > 0),
        }

    def _record_trigger(self, alert: CustomAlert):
        alert.triggered_count += 1
        alert.last_triggered = self.clock()
        try:
            self.storage.save_alert(alert)
        except PersistenceError as e:
            logger.error(f"Error saving alert {alert.id}: {e}")

    def check(self, signal: Signal, active_alerts: List[CustomAlert]) -> List[CustomAlert]:
        """
        Return the alerts the signal matches.

        Each matched alert has its trigger count and time updated and is
        saved; a save failure is logged and the match still reported.
        """
        matched = []
        for alert in active_alerts:
            if match_alert(signal, alert) is None:
                continue
            self._record_trigger(alert)
            matched.append(alert)
        return matched

    def process_signals(
        self, user_id: str, signals: List[Signal]
    ) -> Tuple[List[AlertMatch], List[Notification]]:
        """Evaluate every signal against the user's active alerts."""
        alerts = self.get_active_alerts(user_id)
        if not alerts or not signals:
            return [], []

        matches = []
        notifications = []
        for signal in signals:
            for alert in self.check(signal, alerts):
                matches.append(match_alert(signal, alert))
                notifications.append(create_notification_from_match(alert, signal, self.clock()))
                logger.info(f"Alert '{alert.title}' matched: {signal.title[:60]}")

        if notifications:
            try:
                self.storage.insert_notifications(user_id, notifications)
            except PersistenceError as e:
                logger.error(f"Error saving alert notifications: {e}")
        return matches, notifications
