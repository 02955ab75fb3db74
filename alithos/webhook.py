"""
Webhook delivery with retry logic and error handling.

Payloads are POSTed as JSON. Server errors, timeouts and connection
failures are retried with exponential backoff; client errors (4xx) are
final. Nothing here raises - callers get a WebhookResult.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from requests.exceptions import RequestException, Timeout

from alithos.config import Config
from alithos.utils import current_utc_timestamp

# Configure module logger
logger = logging.getLogger(__name__)

WEBHOOK_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "Alithos Terminal/1.0",
}


@dataclass
class WebhookResult:
    """
    Outcome of a webhook delivery.

    Attributes:
        success: True if a 2xx response was received
        status_code: Last HTTP status seen, if any
        error: Error description on failure
        attempt: Number of the final attempt
        retries: Retries performed (attempt - 1)
    """
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    attempt: int = 0
    retries: int = 0


@dataclass
class WebhookCheckResult:
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_time_ms: float = 0.0


def send_webhook(
    url: str,
    payload: dict[str, Any],
    max_retries: Optional[int] = None,
    retry_delay_ms: Optional[int] = None,
    timeout_ms: Optional[int] = None,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> WebhookResult:
    """
    POST a JSON payload, retrying transient failures.

    Args:
        url: Webhook endpoint
        payload: JSON-serializable body
        max_retries: Total attempts. If None, uses Config.WEBHOOK_MAX_RETRIES
        retry_delay_ms: Base backoff; attempt n waits delay * 2^(n-1).
            If None, uses Config.WEBHOOK_RETRY_DELAY_MS
        timeout_ms: Per-attempt timeout. If None, uses Config.WEBHOOK_TIMEOUT_MS
        session: HTTP session (default: module-level requests)
        sleep: Sleep function used between attempts

    Returns:
        WebhookResult describing the final outcome
    """
    attempts = max_retries if max_retries is not None else Config.WEBHOOK_MAX_RETRIES
    delay_ms = retry_delay_ms if retry_delay_ms is not None else Config.WEBHOOK_RETRY_DELAY_MS
    timeout = (timeout_ms if timeout_ms is not None else Config.WEBHOOK_TIMEOUT_MS) / 1000.0
    http = session or requests

    last_error: Optional[str] = None
    last_status: Optional[int] = None

    for attempt in range(1, attempts + 1):
        try:
            response = http.post(url, json=payload, headers=WEBHOOK_HEADERS, timeout=timeout)
            last_status = response.status_code

            if 200 <= response.status_code < 300:
                logger.debug(f"Webhook delivered to {url} on attempt {attempt}")
                return WebhookResult(
                    success=True,
                    status_code=response.status_code,
                    attempt=attempt,
                    retries=attempt - 1,
                )

            if 400 <= response.status_code < 500:
                # Client errors will not succeed on retry
                return WebhookResult(
                    success=False,
                    status_code=response.status_code,
                    error=f"Client error: {response.status_code} {response.text[:200]}",
                    attempt=attempt,
                    retries=attempt - 1,
                )

            last_error = f"HTTP {response.status_code}: {response.reason}"

        except Timeout:
            last_error = "Request timeout"

        except RequestException as e:
            last_error = str(e) or "Unknown error"

        if attempt < attempts:
            delay = delay_ms * (2 ** (attempt - 1)) / 1000.0
            logger.warning(
                f"Webhook to {url} failed (attempt {attempt}/{attempts}): {last_error}. "
                f"Retrying in {delay:.2f}s..."
            )
            sleep(delay)

    return WebhookResult(
        success=False,
        status_code=last_status,
        error=last_error or "Unknown error",
        attempt=attempts,
        retries=max(0, attempts - 1),
    )


def verify_webhook(url: str, session: Optional[requests.Session] = None) -> WebhookCheckResult:
    """
    Send a single test payload to verify a webhook URL is reachable.

    Args:
        url: Webhook endpoint
        session: HTTP session (default: module-level requests)

    Returns:
        WebhookCheckResult with status and response time
    """
    http = session or requests
    payload = {
        "alert": "Test Alert",
        "timestamp": current_utc_timestamp(),
        "message": "This is a test webhook from Alithos Terminal",
    }

    start = time.monotonic()
    try:
        response = http.post(url, json=payload, headers=WEBHOOK_HEADERS, timeout=10)
        elapsed = (time.monotonic() - start) * 1000.0

        if 200 <= response.status_code < 300:
            return WebhookCheckResult(success=True, status_code=response.status_code, response_time_ms=elapsed)

        return WebhookCheckResult(
            success=False,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}: {response.text[:200]}",
            response_time_ms=elapsed,
        )

    except Timeout:
        return WebhookCheckResult(
            success=False,
            error="Request timeout (10s)",
            response_time_ms=(time.monotonic() - start) * 1000.0,
        )

    except RequestException as e:
        return WebhookCheckResult(
            success=False,
            error=str(e) or "Unknown error",
            response_time_ms=(time.monotonic() - start) * 1000.0,
        )
