import pytest

from alithos.exceptions import AlertValidationError
from alithos.validators import (
    apply_alert_update,
    build_alert,
    build_notification_preferences,
    is_valid_email,
    is_valid_url,
    validate_alert_create,
    validate_alert_update,
    validate_notification_preferences,
)


def _payload(**overrides):
    data = {
        "name": "Fed breakout",
        "marketId": "m1",
        "conditions": [{"type": "price", "operator": "gt", "value": 70}],
        "actions": [{"type": "notify", "config": {"message": "Above 70%"}}],
        "cooldownPeriodMinutes": 15,
    }
    data.update(overrides)
    return data


class TestAlertCreate:

    def test_valid_payload(self):
        assert validate_alert_create(_payload()) == (True, [])

    def test_name_required(self):
        is_valid, errors = validate_alert_create(_payload(name="  "))
        assert not is_valid
        assert "Alert name is required" in errors

    def test_name_too_long(self):
        _, errors = validate_alert_create(_payload(name="x" * 101))
        assert "Alert name too long" in errors

    def test_conditions_required(self):
        _, errors = validate_alert_create(_payload(conditions=[]))
        assert "At least one condition is required" in errors

    def test_too_many_conditions(self):
        conditions = [{"type": "price", "operator": "gt", "value": i} for i in range(11)]
        _, errors = validate_alert_create(_payload(conditions=conditions))
        assert "Too many conditions (max 10)" in errors

    def test_bad_condition_fields(self):
        _, errors = validate_alert_create(_payload(conditions=[
            {"type": "mood", "operator": "gt", "value": 1},
            {"type": "price", "operator": "between", "value": 1},
            {"type": "price", "operator": "gt", "value": -1},
            {"type": "price", "operator": "gt", "value": "high"},
        ]))
        assert any(e.startswith("conditions[0].type") for e in errors)
        assert any(e.startswith("conditions[1].operator") for e in errors)
        assert "conditions[2].value cannot be negative" in errors
        assert "conditions[3].value must be a number" in errors

    def test_order_params_checked(self):
        _, errors = validate_alert_create(_payload(actions=[{
            "type": "order",
            "config": {"orderParams": {"marketId": "", "outcome": "MAYBE", "amount": 0, "type": "hold"}},
        }]))
        assert "actions[0].config.orderParams.marketId is required" in errors
        assert "actions[0].config.orderParams.outcome must be YES or NO" in errors
        assert "actions[0].config.orderParams.amount must be positive" in errors
        assert "actions[0].config.orderParams.type must be buy or sell" in errors

    def test_webhook_url_checked(self):
        _, errors = validate_alert_create(_payload(actions=[
            {"type": "webhook", "config": {"webhookUrl": "ftp://example.com"}},
        ]))
        assert "actions[0].config.webhookUrl must be a valid http(s) URL" in errors

    def test_cooldown_must_be_non_negative_int(self):
        for bad in (-1, 1.5, True, "15"):
            _, errors = validate_alert_create(_payload(cooldownPeriodMinutes=bad))
            assert "cooldownPeriodMinutes must be a non-negative integer" in errors

    def test_not_a_dict(self):
        assert validate_alert_create(["x"]) == (False, ["Alert payload must be an object"])


class TestAlertUpdate:

    def test_only_present_fields_checked(self):
        assert validate_alert_update({"isActive": False}) == (True, [])

    def test_present_fields_validated(self):
        _, errors = validate_alert_update({"conditions": [], "isActive": "yes"})
        assert "At least one condition is required" in errors
        assert "isActive must be a boolean" in errors


class TestBuilders:

    def test_build_alert(self):
        alert = build_alert(_payload(lastTriggered="2025-01-01T00:00:00Z"), alert_id="abc")

        assert alert.id == "abc"
        assert alert.market_id == "m1"
        assert alert.conditions[0].value == 70.0
        assert alert.actions[0].message == "Above 70%"
        assert alert.cooldown_period_minutes == 15
        assert alert.last_triggered is None

    def test_build_alert_generates_id(self):
        assert build_alert(_payload()).id

    def test_build_alert_raises(self):
        with pytest.raises(AlertValidationError) as exc_info:
            build_alert(_payload(name=""))
        assert "Alert name is required" in exc_info.value.errors

    def test_apply_update(self):
        alert = build_alert(_payload(), alert_id="abc")

        updated = apply_alert_update(alert, {"name": "Renamed", "isActive": False})

        assert updated.id == "abc"
        assert updated.name == "Renamed"
        assert updated.is_active is False
        assert updated.conditions == alert.conditions

    def test_apply_update_rejects_invalid(self):
        alert = build_alert(_payload())
        with pytest.raises(AlertValidationError):
            apply_alert_update(alert, {"cooldownPeriodMinutes": -5})


class TestPreferences:

    def test_webhook_requires_url(self):
        is_valid, errors = validate_notification_preferences({"webhook": True})
        assert not is_valid
        assert "Webhook URL is required when webhook notifications are enabled" in errors

    def test_build(self):
        prefs = build_notification_preferences({
            "browser": False,
            "email": True,
            "webhook": True,
            "webhookUrl": "https://hooks.example.com/x",
            "telegramChatId": 12345,
        })
        assert prefs.browser is False
        assert prefs.email is True
        assert prefs.webhook_url == "https://hooks.example.com/x"
        assert prefs.telegram_chat_id == "12345"

    def test_non_boolean_flag(self):
        _, errors = validate_notification_preferences({"email": "yes"})
        assert "email must be a boolean" in errors


class TestUrl:

    @pytest.mark.parametrize("url,expected", [
        ("https://example.com/hook", True),
        ("http://localhost:8080", True),
        ("example.com", False),
        ("ftp://example.com", False),
        (None, False),
    ])
    def test_is_valid_url(self, url, expected):
        assert is_valid_url(url) is expected


class TestEmail:

    @pytest.mark.parametrize("email,expected", [
        ("me@example.com", True),
        ("first.last@sub.example.org", True),
        ("me@localhost", False),
        ("two words@example.com", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_email(self, email, expected):
        assert is_valid_email(email) is expected
