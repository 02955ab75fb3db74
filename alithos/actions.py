"""
Action dispatch for triggered alerts.

Every action of a triggered alert runs, in order, independent of the
others' outcomes. User notification preferences and email are fetched
once per trigger and gate the notify and webhook channels.
"""

import logging
from typing import Any, Optional, Protocol

from alithos.models import Alert, AlertAction, NotificationPreferences
from alithos.notifications import NotificationSink
from alithos.utils import current_utc_timestamp
from alithos.webhook import send_webhook

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Alert triggered"


class AlertPersistence(Protocol):
    """Store the alert engine writes trigger times to and reads user settings from."""

    def patch_alert_trigger_timestamp(self, alert_id: str) -> None:
        ...

    def fetch_user_notification_preferences(self) -> Optional[NotificationPreferences]:
        ...

    def fetch_current_user_email(self) -> Optional[str]:
        ...


class ActionDispatcher:
    """
    Executes notify, order and webhook actions.

    Order actions are logged and handed to nothing: trade execution lives
    outside the alert engine.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        persistence: Optional[AlertPersistence] = None,
        webhook_sender=send_webhook,
    ):
        self.sink = sink or NotificationSink()
        self.persistence = persistence
        self.webhook_sender = webhook_sender

    def dispatch(self, alert: Alert) -> None:
        """Run every action of a triggered alert."""
        preferences, user_email = self._load_user_context()

        for action in alert.actions:
            try:
                if action.type == "notify":
                    self._notify(alert, action, preferences, user_email)
                elif action.type == "order":
                    self._order(alert, action)
                elif action.type == "webhook":
                    self._webhook(alert, action, preferences)
                else:
                    logger.warning(f"Unknown action type '{action.type}' on alert {alert.id}")
            except Exception as e:
                logger.error(
                    f"Action '{action.type}' failed for alert {alert.id}: {e}",
                    exc_info=True
                )

    def _load_user_context(self) -> tuple[NotificationPreferences, Optional[str]]:
        preferences: Optional[NotificationPreferences] = None
        user_email: Optional[str] = None

        if self.persistence is None:
            return NotificationPreferences(), None

        try:
            preferences = self.persistence.fetch_user_notification_preferences()
        except Exception as e:
            logger.error(f"Failed to fetch notification preferences: {e}")

        try:
            user_email = self.persistence.fetch_current_user_email()
        except Exception as e:
            logger.error(f"Failed to fetch user email: {e}")

        return preferences or NotificationPreferences(), user_email

    def _notify(
        self,
        alert: Alert,
        action: AlertAction,
        preferences: NotificationPreferences,
        user_email: Optional[str]
    ) -> None:
        message = action.message or DEFAULT_MESSAGE

        if preferences.browser:
            self.sink.send_desktop_notification(message)

        if preferences.email and user_email:
            market = alert.market_id or "Global"
            result = self.sink.send_email(
                to=user_email,
                subject=f"Alert Triggered: {alert.name}",
                body=message,
                html=f"<p>{message}</p><p>Alert: {alert.name}</p><p>Market: {market}</p>",
            )
            if not result.success:
                logger.error(f"Failed to send email notification for alert {alert.id}: {result.error}")

        if preferences.telegram:
            self.sink.send_telegram(f"{alert.name}: {message}", chat_id=preferences.telegram_chat_id)

    def _order(self, alert: Alert, action: AlertAction) -> None:
        if action.order_params is None:
            logger.debug(f"Order action on alert {alert.id} has no order parameters")
            return

        logger.info(f"Execute order for alert {alert.id}: {action.order_params.to_dict()}")

    def _webhook(self, alert: Alert, action: AlertAction, preferences: NotificationPreferences) -> None:
        if not preferences.webhook:
            logger.debug(f"Webhooks disabled in preferences, skipping alert {alert.id}")
            return

        url = preferences.webhook_url or action.webhook_url
        if not url:
            logger.debug(f"No webhook URL for alert {alert.id}")
            return

        result = self.webhook_sender(url, build_webhook_payload(alert, action))
        if not result.success:
            logger.error(f"Webhook delivery failed for alert {alert.id}: {result.error}")


def build_webhook_payload(alert: Alert, action: AlertAction) -> dict[str, Any]:
    return {
        "alert": alert.name,
        "alertId": alert.id,
        "timestamp": current_utc_timestamp(),
        "marketId": alert.market_id,
        "message": action.message or DEFAULT_MESSAGE,
        "conditions": [c.to_dict() for c in alert.conditions],
    }
