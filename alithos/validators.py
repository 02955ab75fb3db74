"""
Validation for alert and notification-preference input.

Inputs are the camelCase payloads used by alert storage and the API
layer (see Alert.to_dict). Validators return (is_valid, errors) like
Config.validate; the build helpers raise AlertValidationError instead.
"""

import re
import uuid
from typing import Any, Optional
from urllib.parse import urlparse

from alithos.exceptions import AlertValidationError
from alithos.models import (
    ACTION_TYPES,
    CONDITION_OPERATORS,
    CONDITION_TYPES,
    ORDER_SIDES,
    OUTCOMES,
    Alert,
    NotificationPreferences,
)

NAME_MAX_LENGTH = 100
MAX_CONDITIONS = 10
MAX_ACTIONS = 5
NOTIFICATION_CHANNELS = ("browser", "email", "webhook", "telegram")

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(_EMAIL_PATTERN.match(email))


def _validate_name(name: Any, errors: list[str]) -> None:
    if not isinstance(name, str) or not name.strip():
        errors.append("Alert name is required")
    elif len(name) > NAME_MAX_LENGTH:
        errors.append("Alert name too long")


def _validate_condition(index: int, condition: Any, errors: list[str]) -> None:
    prefix = f"conditions[{index}]"
    if not isinstance(condition, dict):
        errors.append(f"{prefix} must be an object")
        return

    if condition.get("type") not in CONDITION_TYPES:
        errors.append(f"{prefix}.type must be one of {', '.join(CONDITION_TYPES)}")

    if condition.get("operator") not in CONDITION_OPERATORS:
        errors.append(f"{prefix}.operator must be one of {', '.join(CONDITION_OPERATORS)}")

    value = condition.get("value")
    if not _is_number(value):
        errors.append(f"{prefix}.value must be a number")
    elif value < 0:
        errors.append(f"{prefix}.value cannot be negative")


def _validate_order_params(prefix: str, params: Any, errors: list[str]) -> None:
    if not isinstance(params, dict):
        errors.append(f"{prefix}.orderParams must be an object")
        return

    market_id = params.get("marketId")
    if not isinstance(market_id, str) or not market_id:
        errors.append(f"{prefix}.orderParams.marketId is required")

    if params.get("outcome") not in OUTCOMES:
        errors.append(f"{prefix}.orderParams.outcome must be YES or NO")

    amount = params.get("amount")
    if not _is_number(amount) or amount <= 0:
        errors.append(f"{prefix}.orderParams.amount must be positive")

    if params.get("type") not in ORDER_SIDES:
        errors.append(f"{prefix}.orderParams.type must be buy or sell")


def _validate_action(index: int, action: Any, errors: list[str]) -> None:
    prefix = f"actions[{index}]"
    if not isinstance(action, dict):
        errors.append(f"{prefix} must be an object")
        return

    if action.get("type") not in ACTION_TYPES:
        errors.append(f"{prefix}.type must be one of {', '.join(ACTION_TYPES)}")

    config = action.get("config")
    if not isinstance(config, dict):
        errors.append(f"{prefix}.config is required")
        return

    message = config.get("message")
    if message is not None and not isinstance(message, str):
        errors.append(f"{prefix}.config.message must be a string")

    if config.get("orderParams") is not None:
        _validate_order_params(f"{prefix}.config", config["orderParams"], errors)

    webhook_url = config.get("webhookUrl")
    if webhook_url is not None and not is_valid_url(webhook_url):
        errors.append(f"{prefix}.config.webhookUrl must be a valid http(s) URL")


def _validate_list(
    items: Any,
    label: str,
    max_items: int,
    item_validator,
    errors: list[str]
) -> None:
    if not isinstance(items, list) or not items:
        errors.append(f"At least one {label} is required")
        return

    if len(items) > max_items:
        errors.append(f"Too many {label}s (max {max_items})")

    for index, item in enumerate(items):
        item_validator(index, item, errors)


def _validate_cooldown(cooldown: Any, errors: list[str]) -> None:
    if cooldown is None:
        return
    if not isinstance(cooldown, int) or isinstance(cooldown, bool) or cooldown < 0:
        errors.append("cooldownPeriodMinutes must be a non-negative integer")


def _validate_optional_fields(data: dict, errors: list[str]) -> None:
    market_id = data.get("marketId")
    if market_id is not None and not isinstance(market_id, str):
        errors.append("marketId must be a string")

    if "isActive" in data and not isinstance(data["isActive"], bool):
        errors.append("isActive must be a boolean")

    _validate_cooldown(data.get("cooldownPeriodMinutes"), errors)


def validate_alert_create(data: Any) -> tuple[bool, list[str]]:
    """
    Validate a new alert payload.

    Args:
        data: camelCase alert payload

    Returns:
        tuple: (is_valid, list_of_errors)
    """
    if not isinstance(data, dict):
        return False, ["Alert payload must be an object"]

    errors: list[str] = []
    _validate_name(data.get("name"), errors)
    _validate_list(data.get("conditions"), "condition", MAX_CONDITIONS, _validate_condition, errors)
    _validate_list(data.get("actions"), "action", MAX_ACTIONS, _validate_action, errors)
    _validate_optional_fields(data, errors)

    return (len(errors) == 0, errors)


def validate_alert_update(data: Any) -> tuple[bool, list[str]]:
    """
    Validate a partial alert update; only the fields present are checked.
    """
    if not isinstance(data, dict):
        return False, ["Alert update must be an object"]

    errors: list[str] = []
    if "name" in data:
        _validate_name(data["name"], errors)
    if "conditions" in data:
        _validate_list(data["conditions"], "condition", MAX_CONDITIONS, _validate_condition, errors)
    if "actions" in data:
        _validate_list(data["actions"], "action", MAX_ACTIONS, _validate_action, errors)
    _validate_optional_fields(data, errors)

    return (len(errors) == 0, errors)


def build_alert(data: dict, alert_id: Optional[str] = None) -> Alert:
    """
    Validate a create payload and turn it into an Alert.

    Raises:
        AlertValidationError: If the payload is invalid
    """
    is_valid, errors = validate_alert_create(data)
    if not is_valid:
        raise AlertValidationError(errors)

    return Alert.from_dict({
        **data,
        "id": alert_id or data.get("id") or str(uuid.uuid4()),
        "lastTriggered": None,
    })


def apply_alert_update(alert: Alert, data: dict) -> Alert:
    """
    Validate a partial update and merge it into an existing alert.

    Raises:
        AlertValidationError: If the update is invalid
    """
    is_valid, errors = validate_alert_update(data)
    if not is_valid:
        raise AlertValidationError(errors)

    merged = alert.to_dict()
    for key in ("name", "marketId", "conditions", "actions", "isActive", "cooldownPeriodMinutes"):
        if key in data:
            merged[key] = data[key]

    return Alert.from_dict(merged)


def validate_notification_preferences(data: Any) -> tuple[bool, list[str]]:
    """Validate a notification preferences payload."""
    if not isinstance(data, dict):
        return False, ["Preferences payload must be an object"]

    errors: list[str] = []
    for key in NOTIFICATION_CHANNELS:
        if key in data and not isinstance(data[key], bool):
            errors.append(f"{key} must be a boolean")

    webhook_url = data.get("webhookUrl") or None
    if webhook_url is not None and not is_valid_url(webhook_url):
        errors.append("webhookUrl must be a valid http(s) URL")

    if data.get("webhook") and not webhook_url:
        errors.append("Webhook URL is required when webhook notifications are enabled")

    return (len(errors) == 0, errors)


def build_notification_preferences(data: dict) -> NotificationPreferences:
    """
    Raises:
        AlertValidationError: If the payload is invalid
    """
    is_valid, errors = validate_notification_preferences(data)
    if not is_valid:
        raise AlertValidationError(errors)

    chat_id = data.get("telegramChatId")
    return NotificationPreferences(
        browser=data.get("browser", True),
        email=data.get("email", False),
        webhook=data.get("webhook", False),
        webhook_url=data.get("webhookUrl") or None,
        telegram=data.get("telegram", False),
        telegram_chat_id=str(chat_id) if chat_id else None,
    )
