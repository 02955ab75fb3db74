"""
Alert templates for common trading scenarios.

These templates provide pre-configured alerts that users can quickly
apply to a market.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from alithos.models import Alert, AlertAction, AlertCondition


@dataclass
class AlertTemplate:
    id: str
    name: str
    description: str
    category: str
    conditions: list[AlertCondition]
    actions: list[AlertAction] = field(default_factory=list)
    default_cooldown_minutes: Optional[int] = None


def _notify(message: str) -> list[AlertAction]:
    return [AlertAction(type="notify", message=message)]


ALERT_TEMPLATES: list[AlertTemplate] = [
    # Price
    AlertTemplate(
        id="price-breakout-up",
        name="Price Breakout Up",
        description="Alert when price breaks above a threshold (bullish signal)",
        category="price",
        conditions=[AlertCondition("price", "gt", 70)],
        actions=_notify("Price breakout detected! Price above 70%"),
        default_cooldown_minutes=15,
    ),
    AlertTemplate(
        id="price-breakout-down",
        name="Price Breakout Down",
        description="Alert when price breaks below a threshold (bearish signal)",
        category="price",
        conditions=[AlertCondition("price", "lt", 30)],
        actions=_notify("Price breakdown detected! Price below 30%"),
        default_cooldown_minutes=15,
    ),
    AlertTemplate(
        id="price-extreme",
        name="Price Extreme",
        description="Alert when price reaches extreme levels (>80% or <20%)",
        category="price",
        conditions=[AlertCondition("price", "gte", 80)],
        actions=_notify("Extreme price level reached! Consider taking profit or entering position."),
        default_cooldown_minutes=30,
    ),

    # Volume
    AlertTemplate(
        id="volume-spike",
        name="Volume Spike",
        description="Alert when 24h volume exceeds a threshold (high activity)",
        category="volume",
        conditions=[AlertCondition("volume", "gt", 10000)],
        actions=_notify("Volume spike detected! High trading activity."),
        default_cooldown_minutes=60,
    ),
    AlertTemplate(
        id="volume-surge",
        name="Volume Surge",
        description="Alert when volume exceeds $50K (major activity)",
        category="volume",
        conditions=[AlertCondition("volume", "gt", 50000)],
        actions=_notify("Major volume surge! Market moving significantly."),
        default_cooldown_minutes=60,
    ),

    # Liquidity
    AlertTemplate(
        id="low-liquidity",
        name="Low Liquidity Warning",
        description="Alert when order book depth is low (hard to trade)",
        category="liquidity",
        conditions=[AlertCondition("depth", "lt", 1000)],
        actions=_notify("Low liquidity detected! High slippage risk."),
        default_cooldown_minutes=30,
    ),
    AlertTemplate(
        id="high-liquidity",
        name="High Liquidity Opportunity",
        description="Alert when liquidity improves (good trading conditions)",
        category="liquidity",
        conditions=[AlertCondition("depth", "gt", 5000)],
        actions=_notify("High liquidity available! Good trading conditions."),
        default_cooldown_minutes=30,
    ),

    # Spread
    AlertTemplate(
        id="wide-spread",
        name="Wide Spread Warning",
        description="Alert when spread is wide (>5% = high trading cost)",
        category="spread",
        conditions=[AlertCondition("spread", "gt", 5)],
        actions=_notify("Wide spread detected! High trading costs."),
        default_cooldown_minutes=30,
    ),
    AlertTemplate(
        id="tight-spread",
        name="Tight Spread Opportunity",
        description="Alert when spread is tight (<2% = good trading conditions)",
        category="spread",
        conditions=[AlertCondition("spread", "lt", 2)],
        actions=_notify("Tight spread detected! Good trading conditions."),
        default_cooldown_minutes=30,
    ),

    # Multi-signal
    AlertTemplate(
        id="price-volume-breakout",
        name="Price & Volume Breakout",
        description="Alert when price breaks out AND volume spikes (strong signal)",
        category="price",
        conditions=[
            AlertCondition("price", "gt", 65),
            AlertCondition("volume", "gt", 5000),
        ],
        actions=_notify("Strong breakout signal! Price and volume both elevated."),
        default_cooldown_minutes=30,
    ),
    AlertTemplate(
        id="perfect-storm",
        name="Perfect Storm (Multi-Signal)",
        description="Alert when price, volume, and liquidity all align (optimal conditions)",
        category="price",
        conditions=[
            AlertCondition("price", "gt", 50),
            AlertCondition("volume", "gt", 10000),
            AlertCondition("depth", "gt", 3000),
            AlertCondition("spread", "lt", 3),
        ],
        actions=_notify("Perfect trading conditions! All metrics aligned."),
        default_cooldown_minutes=60,
    ),
]


def get_templates_by_category(category: str) -> list[AlertTemplate]:
    return [t for t in ALERT_TEMPLATES if t.category == category]


def get_template_by_id(template_id: str) -> Optional[AlertTemplate]:
    return next((t for t in ALERT_TEMPLATES if t.id == template_id), None)


def template_to_alert(
    template: AlertTemplate,
    market_id: Optional[str] = None,
    custom_name: Optional[str] = None,
    alert_id: Optional[str] = None,
) -> Alert:
    """
    Build an active alert from a template.

    Conditions and actions are copied so edits to the alert never leak
    back into the template.
    """
    return Alert(
        id=alert_id or str(uuid.uuid4()),
        name=custom_name or template.name,
        market_id=market_id,
        conditions=[AlertCondition(c.type, c.operator, c.value) for c in template.conditions],
        actions=[AlertAction(a.type, a.message, a.order_params, a.webhook_url) for a in template.actions],
        is_active=True,
        cooldown_period_minutes=template.default_cooldown_minutes,
    )
