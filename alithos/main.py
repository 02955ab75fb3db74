"""
Command-line entry point for the Alithos terminal core.

Modes:
1. --research MARKET_ID: run AI market research and print the verdict
2. --watch-alerts: load stored alerts and evaluate them until stopped
3. --test-alert ALERT_ID: dry-run one stored alert against live data
4. --list-templates / --add-template: browse and apply alert templates
5. --status: show stored alerts and recent triggers
6. --set-preferences CHANNELS: choose notification channels and email
"""

import argparse
import logging
import signal
import sys
import time
from typing import Optional

from alithos.alert_scheduler import AlertScheduler
from alithos.alert_templates import (
    ALERT_TEMPLATES,
    get_template_by_id,
    get_templates_by_category,
    template_to_alert,
)
from alithos.conditions import ConditionEvaluator
from alithos.config import Config
from alithos.exceptions import AgentAuthenticationError, AlertValidationError, AnalysisError, ResearchError
from alithos.market_data import PolymarketDataFetcher
from alithos.notifications import NotificationSink
from alithos.reporter import (
    format_dry_run,
    format_status,
    format_telegram_research,
    format_templates,
    generate_research_report,
)
from alithos.research_pipeline import MarketResearchPipeline
from alithos.storage import Storage
from alithos.validators import (
    NOTIFICATION_CHANNELS,
    build_alert,
    build_notification_preferences,
    is_valid_email,
)


# Configure logging
def setup_logging() -> None:
    """Configure logging for the application."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if Config.LOG_FILE:
        Config.ensure_directories()
        handlers.append(logging.FileHandler(Config.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers
    )


logger = logging.getLogger(__name__)

LOCAL_USER_ID = "local"


def _check_config(require_llm: bool = False) -> bool:
    is_valid, errors = Config.validate(require_llm=require_llm)
    if not is_valid:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
    return is_valid


def run_research(market_id: str, force: bool = False, notify: bool = False) -> int:
    """
    Research one market and print the report.

    Returns:
        Exit code (0 success, 1 failure, 2 retryable failure)
    """
    if not _check_config(require_llm=True):
        return 1

    Config.ensure_directories()
    pipeline = MarketResearchPipeline(storage=Storage())

    try:
        result = pipeline.run(market_id, force_refresh=force)

    except AgentAuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        return 1

    except ResearchError as e:
        logger.error(f"Research failed: {e}")
        if e.retryable:
            logger.info("This failure is temporary; try again later.")
            return 2
        return 1

    except AnalysisError as e:
        logger.error(str(e))
        return 1

    print(generate_research_report(result))

    if notify:
        if NotificationSink().send_telegram(format_telegram_research(result)):
            logger.info("Research summary sent to Telegram")
        else:
            logger.warning("Research summary not sent to Telegram")

    return 0


def watch_alerts() -> int:
    """
    Evaluate stored alerts every tick until SIGINT/SIGTERM.

    Returns:
        Exit code
    """
    if not _check_config():
        return 1

    Config.ensure_directories()
    storage = Storage()
    scheduler = AlertScheduler(
        evaluator=ConditionEvaluator(PolymarketDataFetcher()),
        persistence=storage,
    )

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        scheduler.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    alerts = storage.list_alerts()
    scheduler.load_alerts(alerts)
    active = sum(1 for a in alerts if a.is_active)
    logger.info(f"Loaded {len(alerts)} alerts ({active} active)")
    logger.debug(f"Scheduler status: {scheduler.get_status()}")

    if not scheduler.is_running:
        logger.warning("No alerts to watch. Add one with --add-template.")
        return 0

    logger.info("Alert engine is running. Press Ctrl+C to stop.")
    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    finally:
        scheduler.shutdown()

    return 0


def dry_run_alert(alert_id: str) -> int:
    storage = Storage()
    alert = storage.get_alert(alert_id)
    if alert is None:
        logger.error(f"Alert not found: {alert_id}")
        return 1

    scheduler = AlertScheduler(evaluator=ConditionEvaluator(PolymarketDataFetcher()))
    print(format_dry_run(alert, scheduler.test_alert(alert)))
    return 0


def add_template_alert(template_id: str, market_id: Optional[str], name: Optional[str]) -> int:
    template = get_template_by_id(template_id)
    if template is None:
        logger.error(f"Unknown template: {template_id}")
        return 1

    try:
        # Round-trip through validation like any other alert input
        alert = build_alert(template_to_alert(template, market_id, name).to_dict())
    except AlertValidationError as e:
        logger.error(f"Invalid alert: {e}")
        return 1

    Config.ensure_directories()
    if not Storage().save_alert(alert):
        return 1

    print(f"Created alert {alert.id}: {alert.name} (market: {alert.market_id or 'Global'})")
    return 0


def set_preferences(
    channels: str,
    email: Optional[str],
    webhook_url: Optional[str],
    telegram_chat_id: Optional[str]
) -> int:
    """
    Store which channels notify actions use, plus the local user's email.

    Args:
        channels: Comma-separated enabled channels, e.g. "browser,email"
        email: Address for email notifications (kept if already stored)
        webhook_url: Preferred webhook URL, overriding per-action URLs
        telegram_chat_id: Chat for Telegram notifications

    Returns:
        Exit code
    """
    enabled = {c.strip().lower() for c in channels.split(",") if c.strip()}
    unknown = enabled - set(NOTIFICATION_CHANNELS)
    if unknown:
        logger.error(
            f"Unknown channel(s): {', '.join(sorted(unknown))} "
            f"(choose from {', '.join(NOTIFICATION_CHANNELS)})"
        )
        return 1

    if email is not None and not is_valid_email(email):
        logger.error(f"Invalid email address: {email}")
        return 1

    payload = {channel: channel in enabled for channel in NOTIFICATION_CHANNELS}
    payload["webhookUrl"] = webhook_url
    payload["telegramChatId"] = telegram_chat_id
    try:
        preferences = build_notification_preferences(payload)
    except AlertValidationError as e:
        logger.error(f"Invalid preferences: {e}")
        return 1

    Config.ensure_directories()
    storage = Storage()

    if email is not None and not storage.save_user(LOCAL_USER_ID, email):
        return 1

    if preferences.email and not storage.fetch_current_user_email():
        logger.error("Email notifications need an address; pass --email")
        return 1

    if not storage.save_preferences(preferences):
        return 1

    print(f"Notification channels: {', '.join(sorted(enabled)) or 'none'}")
    return 0


def show_status() -> int:
    storage = Storage()
    print(format_status(storage.list_alerts(), storage.get_alert_history(limit=10)))
    return 0


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        description="Alithos Terminal core: alert engine and AI market research",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Research a market (uses a cached result younger than RESEARCH_CACHE_HOURS)
  python -m alithos.main --research 12345

  # Create an alert from a template and watch it
  python -m alithos.main --add-template price-breakout-up --market 12345
  python -m alithos.main --watch-alerts

  # Get alert notifications by email as well as on the desktop
  python -m alithos.main --set-preferences browser,email --email me@example.com
        """
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--research", metavar="MARKET_ID", help="Run AI market research for a market")
    mode.add_argument("--watch-alerts", action="store_true", help="Evaluate stored alerts until stopped")
    mode.add_argument("--test-alert", metavar="ALERT_ID", help="Dry-run a stored alert")
    mode.add_argument("--list-templates", action="store_true", help="List alert templates")
    mode.add_argument("--add-template", metavar="TEMPLATE_ID", help="Create an alert from a template")
    mode.add_argument("--status", action="store_true", help="Show alert engine status")
    mode.add_argument(
        "--set-preferences",
        metavar="CHANNELS",
        help="Enable notification channels (comma-separated: browser,email,webhook,telegram)"
    )

    parser.add_argument("--force", action="store_true", help="Ignore cached research")
    parser.add_argument("--notify", action="store_true", help="Send the research summary to Telegram")
    parser.add_argument("--category", help="Template category filter for --list-templates")
    parser.add_argument("--market", help="Market ID for --add-template (omit for a global alert)")
    parser.add_argument("--name", help="Custom alert name for --add-template")
    parser.add_argument("--email", help="Email address for --set-preferences")
    parser.add_argument("--webhook-url", help="Preferred webhook URL for --set-preferences")
    parser.add_argument("--telegram-chat-id", help="Telegram chat ID for --set-preferences")

    args = parser.parse_args()

    setup_logging()

    try:
        if args.research:
            return run_research(args.research, force=args.force, notify=args.notify)

        if args.watch_alerts:
            return watch_alerts()

        if args.test_alert:
            return dry_run_alert(args.test_alert)

        if args.list_templates:
            templates = get_templates_by_category(args.category) if args.category else ALERT_TEMPLATES
            print(format_templates(templates))
            return 0

        if args.add_template:
            return add_template_alert(args.add_template, args.market, args.name)

        if args.set_preferences is not None:
            return set_preferences(
                args.set_preferences, args.email, args.webhook_url, args.telegram_chat_id
            )

        return show_status()

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
