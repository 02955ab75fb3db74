"""
Alert scheduler for polling-based alert evaluation.

This module owns the in-memory alert registry and a recurring APScheduler
job that evaluates every active alert against live market data. The job
exists only while at least one alert is registered. Each tick walks a
snapshot of the registry taken when the tick starts; alerts added,
removed or updated mid-tick are seen on the next tick.
"""

import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR
import pytz

from alithos.actions import ActionDispatcher, AlertPersistence
from alithos.conditions import ConditionEvaluator
from alithos.config import Config
from alithos.market_data import MarketDataFetcher
from alithos.models import Alert, AlertCondition
from alithos.utils import utc_now

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class ConditionCheck:
    """Outcome of one condition in a dry run."""
    condition: AlertCondition
    current_value: float
    passed: bool
    description: str


@dataclass
class AlertDryRun:
    """Side-effect-free evaluation of every condition of an alert."""
    would_trigger: bool
    conditions: list[ConditionCheck] = field(default_factory=list)


def _default_scheduler_factory() -> BackgroundScheduler:
    return BackgroundScheduler(timezone=pytz.timezone(Config.SCHEDULER_TIMEZONE))


class AlertScheduler:
    """
    Registry of live alerts plus the tick loop that evaluates them.

    Construct one per process and pass it to whatever manages alerts.
    The registry mirrors persisted alerts at runtime; the persistent store
    only receives trigger timestamps from here.
    """

    def __init__(
        self,
        evaluator: Optional[ConditionEvaluator] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        persistence: Optional[AlertPersistence] = None,
        interval_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
        scheduler_factory: Callable[[], BackgroundScheduler] = _default_scheduler_factory,
    ):
        """
        Args:
            evaluator: Resolves conditions (a fetcher-less evaluator if None)
            dispatcher: Runs actions of triggered alerts
            persistence: Receives trigger timestamps
            interval_seconds: Seconds between ticks. If None, uses Config.ALERT_CHECK_INTERVAL_SECONDS
            clock: Returns the current time
            scheduler_factory: Builds the APScheduler instance
        """
        self.evaluator = evaluator or ConditionEvaluator()
        self.persistence = persistence
        self.dispatcher = dispatcher or ActionDispatcher(persistence=persistence)
        self.interval_seconds = interval_seconds or Config.ALERT_CHECK_INTERVAL_SECONDS
        self.clock = clock
        self.scheduler_factory = scheduler_factory

        self._alerts: dict[str, Alert] = {}
        self._lock = threading.Lock()
        # Held across every start/stop so at most one scheduler exists
        self._loop_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._job_id = "alert_check"

    def set_data_fetcher(self, fetcher: Optional[MarketDataFetcher]) -> None:
        self.evaluator.set_data_fetcher(fetcher)

    # Registry

    def add_alert(self, alert: Alert) -> None:
        """Insert or replace an alert and make sure the tick loop is running."""
        with self._lock:
            self._alerts[alert.id] = alert
        self._sync_tick_loop()

    def remove_alert(self, alert_id: str) -> None:
        """Drop an alert; the tick loop stops when the registry empties."""
        with self._lock:
            self._alerts.pop(alert_id, None)
        self._sync_tick_loop()

    def update_alert(self, alert_id: str, **updates) -> Optional[Alert]:
        """
        Merge field updates into a registered alert.

        Args:
            alert_id: Alert to update
            **updates: Alert fields to replace (e.g. is_active=False)

        Returns:
            The updated alert, or None if it is not registered
        """
        with self._lock:
            current = self._alerts.get(alert_id)
            if current is None:
                return None
            updated = dataclasses.replace(current, **updates)
            self._alerts[alert_id] = updated
            return updated

    def load_alerts(self, alerts: list[Alert]) -> None:
        """Replace the whole registry with a persisted alert list."""
        with self._lock:
            self._alerts = {alert.id: alert for alert in alerts}
        self._sync_tick_loop()

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def get_all_alerts(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts.values())

    # Tick loop

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def _sync_tick_loop(self) -> None:
        """Run the tick loop exactly when the registry is non-empty."""
        with self._loop_lock:
            with self._lock:
                empty = not self._alerts

            if empty:
                self._stop_checking()
            else:
                self._start_checking()

    def _start_checking(self) -> None:
        if self._scheduler is not None:
            return

        scheduler = self.scheduler_factory()
        scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
        scheduler.add_job(
            func=self._safe_check_alerts,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self._job_id,
            name="Alert Check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Alert checking started ({self.interval_seconds}s interval)")

    def _stop_checking(self) -> None:
        if self._scheduler is None:
            return

        scheduler = self._scheduler
        self._scheduler = None
        try:
            # A tick may be the caller; never wait on ourselves
            scheduler.shutdown(wait=False)
            logger.info("Alert checking stopped")
        except Exception as e:
            logger.error(f"Error stopping alert scheduler: {e}", exc_info=True)

    def shutdown(self) -> None:
        """Stop the tick loop without touching the registry."""
        with self._loop_lock:
            self._stop_checking()

    def _safe_check_alerts(self) -> None:
        try:
            self.check_alerts()
        except Exception as e:
            logger.error(f"Alert check failed: {e}", exc_info=True)

    def _on_job_executed(self, event) -> None:
        if event.exception:
            logger.error(f"Job {event.job_id} raised an exception: {event.exception}")

    def check_alerts(self) -> list[str]:
        """
        Run one tick over a snapshot of the registry.

        Returns:
            Ids of the alerts that triggered
        """
        triggered: list[str] = []
        snapshot = self.get_all_alerts()

        for alert in snapshot:
            if not alert.is_active:
                continue

            if self._in_cooldown(alert):
                logger.debug(f"Alert {alert.id} in cooldown, skipping")
                continue

            if not self._evaluate_conditions(alert):
                continue

            logger.info(f"Alert triggered: {alert.name} ({alert.id})")
            self.dispatcher.dispatch(alert)
            self.update_alert(alert.id, last_triggered=self.clock())
            self._sync_trigger(alert.id)
            triggered.append(alert.id)

        return triggered

    def _in_cooldown(self, alert: Alert) -> bool:
        if not alert.cooldown_period_minutes or alert.cooldown_period_minutes <= 0:
            return False
        if alert.last_triggered is None:
            return False

        minutes_since = (self.clock() - alert.last_triggered).total_seconds() / 60.0
        return minutes_since < alert.cooldown_period_minutes

    def _evaluate_conditions(self, alert: Alert) -> bool:
        if not alert.conditions:
            return False

        # AND semantics: stop at the first failing condition
        for condition in alert.conditions:
            _, passed = self.evaluator.evaluate(condition, alert.market_id)
            if not passed:
                return False
        return True

    def _sync_trigger(self, alert_id: str) -> None:
        if self.persistence is None:
            return

        try:
            self.persistence.patch_alert_trigger_timestamp(alert_id)
        except Exception as e:
            logger.error(f"Failed to sync trigger timestamp for alert {alert_id}: {e}")

    # Dry run

    def test_alert(self, alert: Alert) -> AlertDryRun:
        """
        Evaluate every condition without dispatching or touching cooldown.

        Unlike a tick this does not short-circuit, so every condition's
        outcome is reported.
        """
        checks: list[ConditionCheck] = []

        for condition in alert.conditions:
            value, passed = self.evaluator.evaluate(condition, alert.market_id)
            checks.append(ConditionCheck(
                condition=condition,
                current_value=value,
                passed=passed,
                description=self.evaluator.describe(condition, value),
            ))

        return AlertDryRun(
            would_trigger=bool(checks) and all(check.passed for check in checks),
            conditions=checks,
        )

    def get_status(self) -> dict:
        """
        Get current scheduler status.

        Returns:
            Dictionary with scheduler status information
        """
        alerts = self.get_all_alerts()
        status = {
            "is_running": self.is_running,
            "alert_count": len(alerts),
            "active_alert_count": sum(1 for a in alerts if a.is_active),
            "interval_seconds": self.interval_seconds,
            "next_run_time": None,
        }

        if self._scheduler is not None:
            try:
                job = self._scheduler.get_job(self._job_id)
                if job and job.next_run_time:
                    status["next_run_time"] = job.next_run_time.isoformat()
            except Exception as e:
                logger.error(f"Error getting next run time: {e}")

        return status
