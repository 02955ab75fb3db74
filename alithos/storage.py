"""
Storage module for persisting alerts, user settings and research results.

One SQLite file backs the alert registry, trigger history, the local user
and its notification preferences, and cached research results. The
alert engine only ever writes trigger timestamps through it.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from alithos.config import Config
from alithos.models import Alert, MarketResearchResult, NotificationPreferences
from alithos.utils import parse_datetime, utc_now

# Configure module logger
logger = logging.getLogger(__name__)


class Storage:
    """
    SQLite repository for alerts, preferences and research.

    Provides methods for storing and retrieving alerts, alert trigger
    history, notification preferences, the local user and market research
    results. Handles table creation automatically.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Args:
            db_path: Database file, Config.DB_PATH when omitted. Tables are
                created on first use.
        """
        self.db_path = Path(db_path or Config.DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    @contextmanager
    def _get_connection(self):
        """
        Yield a connection that commits on success and rolls back on error.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row  # Enable column access by name
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        """Create database tables if they don't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alerts (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    market_id TEXT,
                    conditions TEXT NOT NULL,
                    actions TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    cooldown_period_minutes INTEGER,
                    last_triggered TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alert_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    alert_id TEXT NOT NULL,
                    alert_name TEXT,
                    triggered_at TEXT NOT NULL,
                    FOREIGN KEY (alert_id) REFERENCES alerts(id)
                )
            """)

            # Single row: this terminal serves one local user
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_preferences (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    browser INTEGER NOT NULL DEFAULT 1,
                    email INTEGER NOT NULL DEFAULT 0,
                    webhook INTEGER NOT NULL DEFAULT 0,
                    webhook_url TEXT,
                    telegram INTEGER NOT NULL DEFAULT 0,
                    telegram_chat_id TEXT,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS market_research (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    market_id TEXT NOT NULL,
                    market_question TEXT,
                    verdict TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    result TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_alerts_is_active
                ON alerts(is_active)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_alert_history_alert_id
                ON alert_history(alert_id)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_market_research_market_id
                ON market_research(market_id)
            """)

            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")

    # Alert operations

    def save_alert(self, alert: Alert) -> bool:
        """
        Save or update an alert.

        Returns:
            True if successful, False otherwise
        """
        try:
            now = utc_now().isoformat()

            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT OR REPLACE INTO alerts
                    (id, name, market_id, conditions, actions, is_active,
                     cooldown_period_minutes, last_triggered, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?,
                            COALESCE((SELECT created_at FROM alerts WHERE id = ?), ?),
                            ?)
                """, (
                    alert.id,
                    alert.name,
                    alert.market_id,
                    json.dumps([c.to_dict() for c in alert.conditions]),
                    json.dumps([a.to_dict() for a in alert.actions]),
                    1 if alert.is_active else 0,
                    alert.cooldown_period_minutes,
                    alert.last_triggered.isoformat() if alert.last_triggered else None,
                    alert.id,  # For COALESCE check
                    now,  # Default created_at if new
                    now   # updated_at
                ))

            logger.debug(f"Saved alert: {alert.id}")
            return True

        except Exception as e:
            logger.error(f"Error saving alert {alert.id}: {e}", exc_info=True)
            return False

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,))
                row = cursor.fetchone()
                return self._row_to_alert(row) if row else None

        except Exception as e:
            logger.error(f"Error retrieving alert {alert_id}: {e}", exc_info=True)
            return None

    def list_alerts(self, active: Optional[bool] = None) -> list[Alert]:
        """
        Retrieve alerts, optionally filtered by active flag.

        Args:
            active: True/False to filter, None for all alerts
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                if active is None:
                    cursor.execute("SELECT * FROM alerts ORDER BY created_at DESC")
                else:
                    cursor.execute(
                        "SELECT * FROM alerts WHERE is_active = ? ORDER BY created_at DESC",
                        (1 if active else 0,)
                    )
                return [self._row_to_alert(row) for row in cursor.fetchall()]

        except Exception as e:
            logger.error(f"Error retrieving alerts: {e}", exc_info=True)
            return []

    def delete_alert(self, alert_id: str) -> bool:
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM alert_history WHERE alert_id = ?", (alert_id,))
                cursor.execute("DELETE FROM alerts WHERE id = ?", (alert_id,))
                deleted = cursor.rowcount > 0

            logger.debug(f"Deleted alert: {alert_id}")
            return deleted

        except Exception as e:
            logger.error(f"Error deleting alert {alert_id}: {e}", exc_info=True)
            return False

    def _row_to_alert(self, row: sqlite3.Row) -> Alert:
        """Convert database row to Alert object."""
        return Alert.from_dict({
            "id": row["id"],
            "name": row["name"],
            "marketId": row["market_id"],
            "conditions": json.loads(row["conditions"] or "[]"),
            "actions": json.loads(row["actions"] or "[]"),
            "isActive": bool(row["is_active"]),
            "cooldownPeriodMinutes": row["cooldown_period_minutes"],
            "lastTriggered": row["last_triggered"],
        })

    # Persistence contract used by the alert engine

    def patch_alert_trigger_timestamp(
        self,
        alert_id: str,
        triggered_at: Optional[datetime] = None
    ) -> bool:
        """
        Record that an alert fired: update last_triggered and append history.

        Returns:
            True if the alert exists and was updated, False otherwise
        """
        try:
            timestamp = (triggered_at or utc_now()).isoformat()

            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    UPDATE alerts SET last_triggered = ?, updated_at = ?
                    WHERE id = ?
                """, (timestamp, timestamp, alert_id))

                if cursor.rowcount == 0:
                    logger.warning(f"Cannot record trigger for unknown alert {alert_id}")
                    return False

                cursor.execute("""
                    INSERT INTO alert_history (alert_id, alert_name, triggered_at)
                    VALUES (?, (SELECT name FROM alerts WHERE id = ?), ?)
                """, (alert_id, alert_id, timestamp))

            logger.debug(f"Recorded trigger for alert: {alert_id}")
            return True

        except Exception as e:
            logger.error(f"Error recording trigger for alert {alert_id}: {e}", exc_info=True)
            return False

    def get_alert_history(self, alert_id: Optional[str] = None, limit: int = 50) -> list[dict]:
        """
        Retrieve alert trigger history, newest first.

        Args:
            alert_id: Restrict to one alert (None for all)
            limit: Maximum number of entries
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                if alert_id:
                    cursor.execute("""
                        SELECT * FROM alert_history WHERE alert_id = ?
                        ORDER BY triggered_at DESC, id DESC LIMIT ?
                    """, (alert_id, int(limit)))
                else:
                    cursor.execute("""
                        SELECT * FROM alert_history
                        ORDER BY triggered_at DESC, id DESC LIMIT ?
                    """, (int(limit),))

                return [
                    {
                        "id": row["id"],
                        "alert_id": row["alert_id"],
                        "alert_name": row["alert_name"],
                        "triggered_at": parse_datetime(row["triggered_at"]),
                    }
                    for row in cursor.fetchall()
                ]

        except Exception as e:
            logger.error(f"Error retrieving alert history: {e}", exc_info=True)
            return []

    def save_preferences(self, preferences: NotificationPreferences) -> bool:
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT OR REPLACE INTO user_preferences
                    (id, browser, email, webhook, webhook_url, telegram, telegram_chat_id, updated_at)
                    VALUES (1, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    int(preferences.browser),
                    int(preferences.email),
                    int(preferences.webhook),
                    preferences.webhook_url,
                    int(preferences.telegram),
                    preferences.telegram_chat_id,
                    utc_now().isoformat()
                ))

            logger.debug("Saved notification preferences")
            return True

        except Exception as e:
            logger.error(f"Error saving notification preferences: {e}", exc_info=True)
            return False

    def fetch_user_notification_preferences(self) -> Optional[NotificationPreferences]:
        """
        Returns:
            Stored preferences, or None if none are saved or the read failed
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM user_preferences WHERE id = 1")
                row = cursor.fetchone()
                if not row:
                    return None

                return NotificationPreferences(
                    browser=bool(row["browser"]),
                    email=bool(row["email"]),
                    webhook=bool(row["webhook"]),
                    webhook_url=row["webhook_url"],
                    telegram=bool(row["telegram"]),
                    telegram_chat_id=row["telegram_chat_id"],
                )

        except Exception as e:
            logger.error(f"Error retrieving notification preferences: {e}", exc_info=True)
            return None

    def save_user(self, user_id: str, email: Optional[str]) -> bool:
        try:
            now = utc_now().isoformat()

            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT OR REPLACE INTO users (id, email, created_at, updated_at)
                    VALUES (?, ?, COALESCE((SELECT created_at FROM users WHERE id = ?), ?), ?)
                """, (user_id, email, user_id, now, now))

            logger.debug(f"Saved user: {user_id}")
            return True

        except Exception as e:
            logger.error(f"Error saving user {user_id}: {e}", exc_info=True)
            return False

    def fetch_current_user_email(self) -> Optional[str]:
        """Email of the most recently updated user, if any."""
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT email FROM users
                    WHERE email IS NOT NULL AND email != ''
                    ORDER BY updated_at DESC
                    LIMIT 1
                """)
                row = cursor.fetchone()
                return row["email"] if row else None

        except Exception as e:
            logger.error(f"Error retrieving current user email: {e}", exc_info=True)
            return None

    # Research operations

    def save_research_result(self, result: MarketResearchResult) -> bool:
        """
        Save a completed research run.

        Returns:
            True if successful, False otherwise
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO market_research
                    (market_id, market_question, verdict, confidence, result, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    result.market_id,
                    result.market_question,
                    result.verdict,
                    result.confidence,
                    json.dumps(result.to_dict()),
                    result.timestamp
                ))

            logger.debug(f"Saved research result for market: {result.market_id}")
            return True

        except Exception as e:
            logger.error(f"Error saving research result for {result.market_id}: {e}", exc_info=True)
            return False

    def get_cached_research(
        self,
        market_id: str,
        max_age_hours: Optional[float] = None
    ) -> Optional[MarketResearchResult]:
        """
        Latest research result for a market if it is fresh enough.

        Args:
            market_id: Market identifier
            max_age_hours: Maximum age. If None, uses Config.RESEARCH_CACHE_HOURS

        Returns:
            MarketResearchResult, or None if missing, stale or unreadable
        """
        max_age = max_age_hours if max_age_hours is not None else Config.RESEARCH_CACHE_HOURS

        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT result, created_at FROM market_research
                    WHERE market_id = ?
                    ORDER BY id DESC
                    LIMIT 1
                """, (market_id,))
                row = cursor.fetchone()

            if not row:
                return None

            created_at = parse_datetime(row["created_at"])
            if created_at is None or utc_now() - created_at > timedelta(hours=max_age):
                return None

            return MarketResearchResult.from_dict(json.loads(row["result"]))

        except Exception as e:
            logger.error(f"Error retrieving cached research for {market_id}: {e}", exc_info=True)
            return None

    def get_research_history(self, limit: int = 20) -> list[dict]:
        """
        Summaries of recent research runs, newest first.

        Args:
            limit: Maximum number of entries
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT id, market_id, market_question, verdict, confidence, created_at
                    FROM market_research
                    ORDER BY id DESC
                    LIMIT ?
                """, (int(limit),))

                return [
                    {
                        "id": row["id"],
                        "market_id": row["market_id"],
                        "market_question": row["market_question"],
                        "verdict": row["verdict"],
                        "confidence": row["confidence"],
                        "created_at": row["created_at"],
                    }
                    for row in cursor.fetchall()
                ]

        except Exception as e:
            logger.error(f"Error retrieving research history: {e}", exc_info=True)
            return []
