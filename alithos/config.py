"""
Configuration management for the Alithos trading terminal core.

Every tunable of the alert engine and the research pipeline is read from
the environment once, at import, with .env support.
"""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Pick up a local .env before reading os.environ
load_dotenv()


class Config:
    """
    Process-wide settings as class attributes.

    Keys have no defaults. Everything else falls back to a value that works
    against the public Polymarket endpoints.
    """

    # API Keys
    ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
    PERPLEXITY_API_KEY: Optional[str] = os.getenv("PERPLEXITY_API_KEY")

    # Polymarket Configuration
    POLYMARKET_GAMMA_URL: str = os.getenv(
        "POLYMARKET_GAMMA_URL",
        "https://gamma-api.polymarket.com"
    )
    POLYMARKET_CLOB_URL: str = os.getenv(
        "POLYMARKET_CLOB_URL",
        "https://clob.polymarket.com"
    )
    POLYMARKET_DATA_URL: str = os.getenv(
        "POLYMARKET_DATA_URL",
        "https://data-api.polymarket.com"
    )

    # AI Model Configuration
    CLAUDE_MODEL: str = os.getenv("CLAUDE_MODEL", "claude-3-5-sonnet-20241022")
    PERPLEXITY_MODEL: str = os.getenv("PERPLEXITY_MODEL", "sonar-pro")
    CLAUDE_TEMPERATURE: float = float(os.getenv("CLAUDE_TEMPERATURE", "0.3"))
    CLAUDE_MAX_TOKENS: int = int(os.getenv("CLAUDE_MAX_TOKENS", "4096"))
    PERPLEXITY_MAX_TOKENS: int = int(os.getenv("PERPLEXITY_MAX_TOKENS", "4096"))
    PERPLEXITY_TEMPERATURE: float = float(os.getenv("PERPLEXITY_TEMPERATURE", "0.2"))

    # Request Timeouts (seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "30"))
    RESEARCH_TIMEOUT: int = int(os.getenv("RESEARCH_TIMEOUT", "180"))

    # Research Parameters
    RESEARCH_CACHE_HOURS: float = float(os.getenv("RESEARCH_CACHE_HOURS", "24"))
    MAX_SOURCES: int = int(os.getenv("MAX_SOURCES", "15"))

    # Alert Engine Configuration
    ALERT_CHECK_INTERVAL_SECONDS: int = int(os.getenv("ALERT_CHECK_INTERVAL_SECONDS", "5"))
    SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
    NOTIFICATION_TITLE: str = os.getenv("NOTIFICATION_TITLE", "Alithos Terminal Alert")

    # Webhook delivery
    WEBHOOK_MAX_RETRIES: int = int(os.getenv("WEBHOOK_MAX_RETRIES", "3"))
    WEBHOOK_RETRY_DELAY_MS: int = int(os.getenv("WEBHOOK_RETRY_DELAY_MS", "1000"))
    WEBHOOK_TIMEOUT_MS: int = int(os.getenv("WEBHOOK_TIMEOUT_MS", "10000"))

    # Email (SMTP) Configuration (optional)
    SMTP_HOST: Optional[str] = os.getenv("SMTP_HOST")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: Optional[str] = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
    SMTP_FROM: str = os.getenv("SMTP_FROM", "alerts@alithos.local")

    # Telegram Configuration (optional)
    TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID: Optional[str] = os.getenv("TELEGRAM_CHAT_ID")

    # Database Configuration
    DB_PATH: Path = Path(os.getenv("DB_PATH", "data/alithos.db"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[Path] = Path(os.getenv("LOG_FILE", "logs/alithos.log")) if os.getenv("LOG_FILE") else None

    @classmethod
    def validate(cls, require_llm: bool = False) -> tuple[bool, list[str]]:
        """
        Validate configuration values.

        Args:
            require_llm: Also require the LLM and source-search keys
                (needed for market research, not for the alert engine)

        Returns:
            tuple: (is_valid, list_of_errors)
        """
        errors: list[str] = []

        if require_llm:
            if not cls.ANTHROPIC_API_KEY:
                errors.append("ANTHROPIC_API_KEY is required but not set")
            elif not cls.ANTHROPIC_API_KEY.startswith("sk-"):
                errors.append('Invalid ANTHROPIC_API_KEY format. API key should start with "sk-"')

            if not cls.PERPLEXITY_API_KEY:
                errors.append("PERPLEXITY_API_KEY is required but not set")

        # Validate numeric ranges
        if cls.ALERT_CHECK_INTERVAL_SECONDS < 1:
            errors.append("ALERT_CHECK_INTERVAL_SECONDS must be at least 1")

        if cls.WEBHOOK_MAX_RETRIES < 1:
            errors.append("WEBHOOK_MAX_RETRIES must be at least 1")

        if cls.WEBHOOK_RETRY_DELAY_MS < 0:
            errors.append("WEBHOOK_RETRY_DELAY_MS cannot be negative")

        if cls.WEBHOOK_TIMEOUT_MS < 1:
            errors.append("WEBHOOK_TIMEOUT_MS must be at least 1")

        if cls.RESEARCH_TIMEOUT < 1:
            errors.append("RESEARCH_TIMEOUT must be at least 1")

        if cls.RESEARCH_CACHE_HOURS < 0:
            errors.append("RESEARCH_CACHE_HOURS cannot be negative")

        if cls.MAX_SOURCES < 1:
            errors.append("MAX_SOURCES must be at least 1")

        if not (0.0 <= cls.CLAUDE_TEMPERATURE <= 1.0):
            errors.append("CLAUDE_TEMPERATURE must be between 0.0 and 1.0")

        if not (0.0 <= cls.PERPLEXITY_TEMPERATURE <= 1.0):
            errors.append("PERPLEXITY_TEMPERATURE must be between 0.0 and 1.0")

        return (len(errors) == 0, errors)

    @classmethod
    def ensure_directories(cls) -> None:
        """
        Ensure all required directories exist.

        Creates directories for the database and logs if they don't exist.
        """
        cls.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        if cls.LOG_FILE:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
