"""
Small shared helpers: lenient JSON extraction, time handling, retries and
numeric coercion.
"""

import json
import logging
import math
import re
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

# Configure module logger
logger = logging.getLogger(__name__)

# Type variable for generic function typing
T = TypeVar("T")

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def safe_json_loads(text: str, default: Optional[Any] = None) -> Optional[Any]:
    """
    Pull the first JSON object or array out of a model response.

    Model output often wraps JSON in markdown fences or surrounds it with
    prose. The fences are stripped, then decoding starts at each "{" or "["
    in turn until one yields a complete value.

    Args:
        text: Raw response text
        default: Returned when nothing decodes

    Returns:
        Decoded dict/list, or default
    """
    if not text or not isinstance(text, str):
        return default

    body = _FENCE_PATTERN.sub("", text.strip())
    decoder = json.JSONDecoder()

    for index, char in enumerate(body):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(body, index)
        except json.JSONDecodeError:
            continue
        return value

    logger.debug(f"No JSON value found in response: {body[:200]!r}")
    return default


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def current_utc_timestamp() -> str:
    """
    Get current UTC timestamp as ISO 8601 string.

    Returns:
        ISO 8601 formatted timestamp string (e.g., "2024-01-15T10:30:45.123456+00:00")
    """
    return utc_now().isoformat()


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a datetime or ISO 8601 string into an aware UTC datetime.

    Naive values are assumed to be UTC. A trailing "Z" is accepted.

    Args:
        value: datetime, ISO 8601 string, or None

    Returns:
        Aware datetime, or None if the value is missing or unparseable
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable datetime: {value!r}")
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def days_until(end_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days until a date, rounded up and floored at zero.

    Args:
        end_date: Target date (None if unknown)
        now: Reference time (default: current UTC time)

    Returns:
        Number of days, or None if end_date is None
    """
    if end_date is None:
        return None

    now = now or utc_now()
    seconds = (end_date - now).total_seconds()
    return max(0, math.ceil(seconds / 86400.0))


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,)
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry a callable on the given exceptions, sleeping between attempts.

    The delay starts at initial_delay and grows by exponential_base up to
    max_delay. After max_retries retries the last exception propagates.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempts = max_retries + 1
            for attempt in range(1, attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    delay = min(initial_delay * exponential_base ** (attempt - 1), max_delay)
                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{attempts} failed: {e}; "
                        f"sleeping {delay:.2f}s"
                    )
                    time.sleep(delay)

            try:
                return func(*args, **kwargs)
            except exceptions as e:
                logger.error(f"{func.__name__} gave up after {attempts} attempts: {e}")
                raise

        return wrapper

    return decorator


def clamp(value: float, min_value: float, max_value: float) -> float:
    """
    Clamp a value between minimum and maximum bounds.

    Raises:
        ValueError: If min_value > max_value
    """
    if min_value > max_value:
        raise ValueError(f"min_value ({min_value}) must be <= max_value ({max_value})")

    return max(min_value, min(value, max_value))


def safe_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """
    Safely convert a value to float with a default fallback.

    Handles None, strings, integers, and floats. Returns default on failure
    or for non-finite results.
    """
    if value is None or isinstance(value, bool):
        return default

    try:
        result = float(value)
    except (TypeError, ValueError):
        return default

    if math.isnan(result) or math.isinf(result):
        return default

    return result
