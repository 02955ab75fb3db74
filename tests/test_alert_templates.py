from alithos.alert_templates import (
    ALERT_TEMPLATES,
    get_template_by_id,
    get_templates_by_category,
    template_to_alert,
)
from alithos.validators import validate_alert_create


class TestTemplates:

    def test_ids_unique(self):
        ids = [t.id for t in ALERT_TEMPLATES]
        assert len(ids) == len(set(ids))

    def test_every_template_is_a_valid_alert(self):
        for template in ALERT_TEMPLATES:
            alert = template_to_alert(template, market_id="m1")
            is_valid, errors = validate_alert_create(alert.to_dict())
            assert is_valid, (template.id, errors)

    def test_lookup(self):
        template = get_template_by_id("price-breakout-up")
        assert template.conditions[0].operator == "gt"
        assert template.conditions[0].value == 70
        assert get_template_by_id("nope") is None

    def test_category_filter(self):
        volume = get_templates_by_category("volume")
        assert volume
        assert all(t.category == "volume" for t in volume)
        assert get_templates_by_category("weather") == []

    def test_composite_template(self):
        template = get_template_by_id("perfect-storm")
        assert [c.type for c in template.conditions] == ["price", "volume", "depth", "spread"]


class TestTemplateToAlert:

    def test_defaults(self):
        template = get_template_by_id("volume-spike")
        alert = template_to_alert(template)

        assert alert.name == template.name
        assert alert.market_id is None
        assert alert.is_active
        assert alert.cooldown_period_minutes == template.default_cooldown_minutes
        assert alert.last_triggered is None

    def test_custom_name_and_id(self):
        alert = template_to_alert(get_template_by_id("wide-spread"), "m9", "My spread", alert_id="x1")
        assert (alert.id, alert.name, alert.market_id) == ("x1", "My spread", "m9")

    def test_alert_does_not_share_template_conditions(self):
        template = get_template_by_id("price-breakout-down")
        alert = template_to_alert(template)

        alert.conditions[0].value = 5

        assert template.conditions[0].value == 30
