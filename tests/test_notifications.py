from unittest.mock import AsyncMock, MagicMock, patch

from alithos.config import Config
from alithos.notifications import (
    PERMISSION_DENIED,
    PERMISSION_GRANTED,
    DesktopNotifier,
    NotificationSink,
)


class TestDesktopNotifier:

    def test_first_notification_requests_permission(self):
        display = MagicMock()
        request = MagicMock(return_value=PERMISSION_GRANTED)
        notifier = DesktopNotifier(display=display, request_permission=request)

        assert notifier.notify("Title", "body")
        assert notifier.notify("Title", "again")

        request.assert_called_once()
        assert display.call_count == 2

    def test_denied_is_remembered(self):
        display = MagicMock()
        request = MagicMock(return_value=PERMISSION_DENIED)
        notifier = DesktopNotifier(display=display, request_permission=request)

        assert not notifier.notify("Title", "body")
        assert not notifier.notify("Title", "body")

        request.assert_called_once()
        display.assert_not_called()

    def test_display_failure_returns_false(self):
        display = MagicMock(side_effect=OSError("no display"))
        notifier = DesktopNotifier(display=display, permission=PERMISSION_GRANTED)

        assert not notifier.notify("Title", "body")


class TestNotificationSink:

    def test_email_without_smtp_host(self):
        with patch.object(Config, "SMTP_HOST", None):
            result = NotificationSink().send_email("me@example.com", "subject", "body")

        assert not result.success
        assert result.error == "SMTP not configured"

    def test_email_sent_over_smtp(self):
        with patch.object(Config, "SMTP_HOST", "smtp.example.com"), \
                patch("alithos.notifications.smtplib.SMTP") as smtp:
            result = NotificationSink().send_email("me@example.com", "subject", "body", html="<p>body</p>")

        assert result.success
        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.send_message.assert_called_once()

    def test_telegram_not_configured(self):
        with patch.object(Config, "TELEGRAM_BOT_TOKEN", None):
            assert NotificationSink().send_telegram("hello", chat_id="1") is False

    def test_telegram_sends_message(self):
        with patch.object(Config, "TELEGRAM_BOT_TOKEN", "123:abc"), \
                patch("alithos.notifications.Bot") as bot_cls:
            bot_cls.return_value.send_message = AsyncMock()
            assert NotificationSink().send_telegram("hello", chat_id="42") is True

        bot_cls.return_value.send_message.assert_awaited_once()
        assert bot_cls.return_value.send_message.call_args.kwargs["chat_id"] == 42

    def test_telegram_empty_message(self):
        with patch.object(Config, "TELEGRAM_BOT_TOKEN", "123:abc"):
            assert NotificationSink().send_telegram("   ", chat_id="42") is False
