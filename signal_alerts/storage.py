"""SQLite persistence for signals, interactions, notifications and alerts."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import PersistenceError
from .models import AlertEntities, CustomAlert, Interaction, Notification, Signal

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS signals (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        summary TEXT NOT NULL,
        content TEXT,
        url TEXT NOT NULL,
        source_name TEXT NOT NULL,
        verified INTEGER NOT NULL DEFAULT 0,
        tags TEXT NOT NULL DEFAULT '[]',
        relevance_score REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        image_url TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_signals (
        user_id TEXT NOT NULL,
        signal_id TEXT NOT NULL,
        liked INTEGER NOT NULL DEFAULT 0,
        saved INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (user_id, signal_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        category TEXT NOT NULL,
        urgency TEXT NOT NULL,
        read INTEGER NOT NULL DEFAULT 0,
        signal_id TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS custom_alerts (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        keywords TEXT NOT NULL DEFAULT '[]',
        entities TEXT NOT NULL DEFAULT '{}',
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT,
        triggered_count INTEGER NOT NULL DEFAULT 0,
        last_triggered TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_settings (
        user_id TEXT NOT NULL,
        key TEXT NOT NULL,
        value TEXT NOT NULL,
        PRIMARY KEY (user_id, key)
    )
    """,
]

LAST_GENERATION_KEY = "last_notification_generation_time"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Storage:
    """Manages the SQLite database behind the pipeline."""

    def __init__(self, db_path: str = "data/signals.sqlite"):
        """Initialize storage with database path."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _init_db(self):
        """Initialize the database schema."""
        with self._connect() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logger.debug(f"Initialized database at {self.db_path}")

    # Signals

    def upsert_signal(self, signal: Signal):
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO signals
                    (id, title, summary, content, url, source_name, verified,
                     tags, relevance_score, created_at, image_url)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.id,
                    signal.title,
                    signal.summary,
                    signal.content,
                    signal.url,
                    signal.source_name,
                    int(signal.verified),
                    json.dumps(signal.tags),
                    signal.relevance_score,
                    signal.timestamp.isoformat(),
                    signal.image_url,
                ),
            )

    def get_signals(self, limit: int = 20) -> List[dict]:
        """Most recent persisted signals as raw records."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM signals ORDER BY created_at DESC LIMIT ?", (limit,)
            ).fetchall()
        records = []
        for row in rows:
            record = dict(row)
            record["tags"] = json.loads(record["tags"] or "[]")
            record["verified"] = bool(record["verified"])
            records.append(record)
        return records

    # Interactions

    def get_interactions(self, user_id: str) -> Dict[str, Interaction]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT signal_id, liked, saved FROM user_signals WHERE user_id = ?",
                (user_id,),
            ).fetchall()
        return {
            row["signal_id"]: Interaction(row["signal_id"], bool(row["liked"]), bool(row["saved"]))
            for row in rows
        }

    def get_interaction(self, user_id: str, signal_id: str) -> Optional[Interaction]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT liked, saved FROM user_signals WHERE user_id = ? AND signal_id = ?",
                (user_id, signal_id),
            ).fetchone()
        if row is None:
            return None
        return Interaction(signal_id, bool(row["liked"]), bool(row["saved"]))

    def set_interaction(self, user_id: str, interaction: Interaction):
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO user_signals (user_id, signal_id, liked, saved)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, interaction.signal_id, int(interaction.liked), int(interaction.saved)),
            )

    def delete_interaction(self, user_id: str, signal_id: str):
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM user_signals WHERE user_id = ? AND signal_id = ?",
                (user_id, signal_id),
            )

    # Notifications

    def insert_notifications(self, user_id: str, notifications: Iterable[Notification]) -> int:
        """Insert notifications, ignoring ids that already exist."""
        rows = [
            (
                n.id,
                user_id,
                n.title or "Untitled",
                n.message or "",
                n.category or "General",
                n.urgency or "low",
                int(n.read),
                n.signal_id,
                n.timestamp.isoformat(),
            )
            for n in notifications
        ]
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany(
                """
                INSERT OR IGNORE INTO notifications
                    (id, user_id, title, message, category, urgency, read, signal_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            inserted = conn.total_changes - before
        logger.debug(f"Inserted {inserted} notifications for {user_id}")
        return inserted

    def get_notifications(self, user_id: str, limit: int = 50) -> List[Notification]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM notifications WHERE user_id = ?
                ORDER BY created_at DESC LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [
            Notification(
                id=row["id"],
                title=row["title"],
                message=row["message"],
                category=row["category"],
                urgency=row["urgency"],
                timestamp=_from_iso(row["created_at"]),
                read=bool(row["read"]),
                signal_id=row["signal_id"],
            )
            for row in rows
        ]

    def mark_notification_read(self, notification_id: str):
        with self._connect() as conn:
            conn.execute("UPDATE notifications SET read = 1 WHERE id = ?", (notification_id,))

    def delete_notification(self, notification_id: str):
        with self._connect() as conn:
            conn.execute("DELETE FROM notifications WHERE id = ?", (notification_id,))

    # Rate-limit state

    def get_last_notification_gen_time(self, user_id: str) -> Optional[datetime]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM user_settings WHERE user_id = ? AND key = ?",
                (user_id, LAST_GENERATION_KEY),
            ).fetchone()
        return _from_iso(row["value"]) if row else None

    def set_last_notification_gen_time(self, user_id: str, when: datetime):
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO user_settings (user_id, key, value) VALUES (?, ?, ?)",
                (user_id, LAST_GENERATION_KEY, when.isoformat()),
            )

    # Custom alerts

    def _row_to_alert(self, row: sqlite3.Row) -> CustomAlert:
        return CustomAlert(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            title=row["title"],
            description=row["description"],
            keywords=json.loads(row["keywords"] or "[]"),
            entities=AlertEntities.from_dict(json.loads(row["entities"] or "{}")),
            is_active=bool(row["is_active"]),
            created_at=_from_iso(row["created_at"]),
            triggered_count=row["triggered_count"],
            last_triggered=_from_iso(row["last_triggered"]),
        )

    def get_user_alerts(self, user_id: str) -> List[CustomAlert]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM custom_alerts WHERE user_id = ? ORDER BY created_at",
                (user_id,),
            ).fetchall()
        return [self._row_to_alert(row) for row in rows]

    def get_active_alerts(self, user_id: str) -> List[CustomAlert]:
        return [alert for alert in self.get_user_alerts(user_id) if alert.is_active]

    def get_alert(self, alert_id: str) -> Optional[CustomAlert]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM custom_alerts WHERE id = ?", (alert_id,)).fetchone()
        return self._row_to_alert(row) if row else None

    def save_alert(self, alert: CustomAlert):
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO custom_alerts
                    (id, user_id, type, title, description, keywords, entities,
                     is_active, created_at, triggered_count, last_triggered)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert.id,
                    alert.user_id,
                    alert.type,
                    alert.title,
                    alert.description,
                    json.dumps(alert.keywords),
                    json.dumps(alert.entities.to_dict()),
                    int(alert.is_active),
                    _iso(alert.created_at),
                    alert.triggered_count,
                    _iso(alert.last_triggered),
                ),
            )
        logger.debug(f"Saved alert {alert.id} for {alert.user_id}")

    def delete_alert(self, alert_id: str):
        with self._connect() as conn:
            conn.execute("DELETE FROM custom_alerts WHERE id = ?", (alert_id,))
