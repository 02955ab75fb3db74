"""
Condition evaluation for alerts.

Resolves an abstract alert condition to a concrete number using the
configured MarketDataFetcher, and compares it against the threshold.
Data problems never raise from here: missing values fall back to fixed
defaults and fetcher exceptions resolve to 0.
"""

import logging
from typing import Optional

from alithos.market_data import MarketDataFetcher
from alithos.models import AlertCondition

# Configure module logger
logger = logging.getLogger(__name__)

EQ_EPSILON = 0.001

# Values used when there is no market or no fetcher to ask
FALLBACK_VALUES = {
    "price": 50.0,
    "volume": 1000.0,
    "depth": 500.0,
    "flow": 100.0,
    "spread": 0.02,
}

OPERATOR_SYMBOLS = {
    "gt": ">",
    "lt": "<",
    "gte": "≥",
    "lte": "≤",
    "eq": "=",
}

CONDITION_LABELS = {
    "price": "Price",
    "volume": "Volume (24h)",
    "depth": "Depth",
    "spread": "Spread",
    "flow": "Flow",
}


class ConditionEvaluator:
    """
    Resolves alert conditions against live market data.

    Without a fetcher (or for global alerts with no market id) every
    condition resolves to its fixed FALLBACK_VALUES entry.
    """

    def __init__(self, data_fetcher: Optional[MarketDataFetcher] = None):
        self.data_fetcher = data_fetcher

    def set_data_fetcher(self, data_fetcher: Optional[MarketDataFetcher]) -> None:
        self.data_fetcher = data_fetcher

    def resolve(self, condition: AlertCondition, market_id: Optional[str] = None) -> float:
        """
        Current value of the signal a condition refers to.

        Args:
            condition: Condition to resolve
            market_id: Market to read (None for global alerts)

        Returns:
            Price and spread as percentages, volume and depth in currency
            units, flow as a decayed trade-size sum
        """
        if not market_id or self.data_fetcher is None:
            return FALLBACK_VALUES.get(condition.type, 0.0)

        fetcher = self.data_fetcher

        try:
            if condition.type == "price":
                price = fetcher.get_price(market_id)
                return price if price is not None else 50.0

            if condition.type == "volume":
                volume = fetcher.get_volume(market_id)
                return volume if volume is not None else 0.0

            if condition.type == "depth":
                depth = fetcher.get_depth(market_id, "YES")
                return depth if depth is not None else 0.0

            if condition.type == "spread":
                spread = fetcher.get_spread(market_id, "YES")
                return spread * 100.0 if spread is not None else 0.0

            if condition.type == "flow":
                flow = fetcher.get_flow(market_id, "YES")
                if flow is None:
                    flow = fetcher.compute_flow(market_id, "YES")
                return flow if flow is not None else 0.0

            logger.warning(f"Unknown condition type: {condition.type}")
            return 0.0

        except Exception as e:
            logger.error(
                f"Error fetching {condition.type} for market {market_id}: {e}",
                exc_info=True
            )
            return 0.0

    @staticmethod
    def compare(value: float, operator: str, threshold: float) -> bool:
        """Apply a comparison operator; eq uses an absolute epsilon of 0.001."""
        if operator == "gt":
            return value > threshold
        if operator == "lt":
            return value < threshold
        if operator == "gte":
            return value >= threshold
        if operator == "lte":
            return value <= threshold
        if operator == "eq":
            return abs(value - threshold) < EQ_EPSILON
        return False

    def evaluate(self, condition: AlertCondition, market_id: Optional[str] = None) -> tuple[float, bool]:
        """Resolve a condition and compare it; returns (value, passed)."""
        value = self.resolve(condition, market_id)
        return value, self.compare(value, condition.operator, condition.value)

    @staticmethod
    def describe(condition: AlertCondition, value: float) -> str:
        """Human-readable summary, e.g. "Price: 65.00 > 60.00"."""
        label = CONDITION_LABELS.get(condition.type, condition.type)
        symbol = OPERATOR_SYMBOLS.get(condition.operator, condition.operator)
        return f"{label}: {value:.2f} {symbol} {condition.value:.2f}"
