"""
Notification channels for triggered alerts.

This module provides the NotificationSink used by the action dispatcher:
a permission-gated local desktop notification, outbound email over SMTP
and Telegram messages via python-telegram-bot. Delivery failures are
logged and reported through result objects; nothing here raises.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional

from telegram import Bot
from telegram.error import TelegramError, TimedOut, NetworkError

from alithos.config import Config

# Configure module logger
logger = logging.getLogger(__name__)

PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"


@dataclass
class EmailResult:
    success: bool
    error: Optional[str] = None


def _log_display(title: str, message: str) -> None:
    logger.info(f"[{title}] {message}")


class DesktopNotifier:
    """
    Local notification primitive with a permission model.

    Notifications are shown only once permission is granted. While the
    permission is still undecided, the first notification asks for it via
    request_permission; a denial is remembered and never asked again.
    """

    def __init__(
        self,
        display: Callable[[str, str], None] = _log_display,
        request_permission: Optional[Callable[[], str]] = None,
        permission: str = PERMISSION_DEFAULT,
    ):
        """
        Args:
            display: Shows a notification given (title, body)
            request_permission: Asks the user and returns "granted" or "denied".
                If None, permission is granted on first request.
            permission: Initial permission state
        """
        self.display = display
        self.request_permission = request_permission or (lambda: PERMISSION_GRANTED)
        self.permission = permission

    def notify(self, title: str, message: str) -> bool:
        """
        Show a notification if permitted.

        Returns:
            True if the notification was shown
        """
        if self.permission == PERMISSION_DEFAULT:
            try:
                self.permission = self.request_permission()
            except Exception as e:
                logger.warning(f"Notification permission request failed: {e}")
                return False

        if self.permission != PERMISSION_GRANTED:
            logger.debug("Desktop notification suppressed: permission not granted")
            return False

        try:
            self.display(title, message)
            return True
        except Exception as e:
            logger.error(f"Failed to display notification: {e}", exc_info=True)
            return False


class NotificationSink:
    """Outbound notification channels used when an alert fires."""

    def __init__(self, desktop: Optional[DesktopNotifier] = None):
        self.desktop = desktop or DesktopNotifier()

    def send_desktop_notification(self, message: str) -> bool:
        """Show a local notification and echo it to the log."""
        logger.info(f"[ALERT] {message}")
        return self.desktop.notify(Config.NOTIFICATION_TITLE, message)

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        html: Optional[str] = None
    ) -> EmailResult:
        """
        Send an email over SMTP.

        Args:
            to: Recipient address
            subject: Subject line
            body: Plain-text body
            html: Optional HTML alternative

        Returns:
            EmailResult with success flag and error description
        """
        if not Config.SMTP_HOST:
            logger.debug("Email not configured (missing SMTP_HOST)")
            return EmailResult(success=False, error="SMTP not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = Config.SMTP_FROM
        msg["To"] = to
        msg.attach(MIMEText(body, "plain"))
        if html:
            msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(Config.SMTP_HOST, Config.SMTP_PORT, timeout=Config.API_TIMEOUT) as server:
                server.starttls()
                if Config.SMTP_USERNAME and Config.SMTP_PASSWORD:
                    server.login(Config.SMTP_USERNAME, Config.SMTP_PASSWORD)
                server.send_message(msg)

            logger.info(f"Email sent to {to}: {subject}")
            return EmailResult(success=True)

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return EmailResult(success=False, error=str(e))

    def send_telegram(self, message: str, chat_id: Optional[str] = None) -> bool:
        """
        Send a plain-text Telegram message.

        Args:
            message: Message text
            chat_id: Target chat. If None, uses Config.TELEGRAM_CHAT_ID

        Returns:
            True if the message was sent
        """
        chat = chat_id or Config.TELEGRAM_CHAT_ID
        if not Config.TELEGRAM_BOT_TOKEN or not chat:
            logger.debug("Telegram not configured (missing token or chat_id)")
            return False

        if not message or not message.strip():
            logger.warning("Empty message, not sending")
            return False

        try:
            target = int(chat)
        except ValueError:
            target = chat

        try:
            bot = Bot(token=Config.TELEGRAM_BOT_TOKEN)
            asyncio.run(bot.send_message(
                chat_id=target,
                text=message,
                disable_web_page_preview=True,
            ))
            logger.info("Telegram message sent successfully")
            return True

        except TimedOut:
            logger.error("Telegram API request timed out")
            return False

        except NetworkError as e:
            logger.error(f"Network error sending Telegram message: {e}")
            return False

        except TelegramError as e:
            logger.error(f"Telegram API error: {e}")
            return False
