"""
Live market data for alert evaluation and research.

This module defines the MarketDataFetcher interface consumed by the
condition evaluator and a Polymarket implementation backed by the Gamma,
CLOB and data REST APIs. It performs no business logic - only data
fetching and normalization. Every failure is logged and reported as None.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from alithos.config import Config
from alithos.models import MarketSnapshot
from alithos.utils import parse_datetime, safe_float, utc_now

# Configure module logger
logger = logging.getLogger(__name__)

# Trades older than this contribute nothing to flow
FLOW_DECAY_SECONDS = 60 * 60
FLOW_TRADE_WINDOW = 20


class MarketDataFetcher(Protocol):
    """
    Source of live market signals.

    The get_* methods return None when a value is unknown. get_flow is the
    cheap path and may return None when the value has not been computed;
    compute_flow is the explicit slow path that fetches trade history.
    """

    def get_price(self, market_id: str) -> Optional[float]:
        ...

    def get_volume(self, market_id: str) -> Optional[float]:
        ...

    def get_depth(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        ...

    def get_spread(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        ...

    def get_flow(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        ...

    def compute_flow(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        ...


class PolymarketDataFetcher:
    """
    MarketDataFetcher backed by Polymarket's public REST APIs.

    Prices come from the Gamma market record, depth and spread from the
    CLOB order book of the outcome's token, and flow from recent trades.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            session: HTTP session to use (a new one is created if None)
            timeout: Request timeout in seconds. If None, uses Config.API_TIMEOUT
            clock: Returns the current time (used for flow decay)
        """
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "Alithos Terminal/1.0",
        })
        self.timeout = timeout if timeout is not None else Config.API_TIMEOUT
        self.clock = clock

    # Signals

    def get_price(self, market_id: str) -> Optional[float]:
        """YES probability as a percentage (0-100)."""
        market = self._get_market(market_id)
        if not market:
            return None

        prices = _parse_outcome_prices(market)
        if "YES" not in prices:
            return None

        return prices["YES"] * 100.0

    def get_volume(self, market_id: str) -> Optional[float]:
        """24-hour volume in USDC."""
        market = self._get_market(market_id)
        if not market:
            return None

        volume = safe_float(market.get("volume24hr"), default=None)
        if volume is None:
            volume = safe_float(market.get("volume"), default=None)
        return volume

    def get_depth(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        """Total resting size on both sides of the outcome's order book."""
        book = self._get_order_book(market_id, outcome)
        if book is None:
            return None

        bid_depth = sum(safe_float(level.get("size")) for level in book.get("bids") or [])
        ask_depth = sum(safe_float(level.get("size")) for level in book.get("asks") or [])
        return bid_depth + ask_depth

    def get_spread(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        """Best ask minus best bid as a 0-1 fraction."""
        book = self._get_order_book(market_id, outcome)
        if book is None:
            return None

        bids = [safe_float(level.get("price"), default=None) for level in book.get("bids") or []]
        asks = [safe_float(level.get("price"), default=None) for level in book.get("asks") or []]
        bids = [p for p in bids if p is not None]
        asks = [p for p in asks if p is not None]

        if not bids or not asks:
            return None

        return min(asks) - max(bids)

    def get_flow(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        # Flow always needs trade history; see compute_flow.
        return None

    def compute_flow(self, market_id: str, outcome: str = "YES") -> Optional[float]:
        """
        Time-decayed trade size over the most recent trades of an outcome.

        Each of the last FLOW_TRADE_WINDOW trades contributes its size
        weighted by max(0, 1 - age / 1h). This measures activity, not
        signed order flow.

        Returns:
            Flow value (0.0 when there are no trades), or None on failure
        """
        market = self._get_market(market_id)
        if not market:
            return None

        condition_id = market.get("conditionId") or market_id
        trades = self._get_json(
            f"{Config.POLYMARKET_DATA_URL}/trades",
            params={"market": condition_id, "limit": 100},
        )
        if trades is None:
            return None

        if not isinstance(trades, list) or not trades:
            return 0.0

        wanted = outcome.upper()
        relevant = [
            t for t in trades
            if isinstance(t, dict) and str(t.get("outcome", "")).upper() == wanted
        ][:FLOW_TRADE_WINDOW]

        now_ts = self.clock().timestamp()
        flow = 0.0
        for trade in relevant:
            ts = safe_float(trade.get("timestamp"))
            age = now_ts - ts
            weight = max(0.0, 1.0 - age / FLOW_DECAY_SECONDS)
            flow += safe_float(trade.get("size")) * weight

        return flow

    # Snapshot

    def fetch_market_snapshot(self, market_id: str) -> Optional[MarketSnapshot]:
        """
        Fetch a market and normalize it into a MarketSnapshot.

        Returns:
            MarketSnapshot, or None if the market cannot be fetched
        """
        market = self._get_market(market_id)
        if not market:
            return None

        prices = _parse_outcome_prices(market)
        return MarketSnapshot(
            market_id=str(market.get("id", market_id)),
            question=str(market.get("question") or ""),
            category=market.get("category") or None,
            end_date=parse_datetime(market.get("endDate")),
            outcome_prices=prices or None,
            resolution_source=market.get("resolutionSource") or None,
            resolution_criteria=market.get("description") or None,
        )

    # HTTP helpers

    def _get_market(self, market_id: str) -> Optional[dict]:
        data = self._get_json(f"{Config.POLYMARKET_GAMMA_URL}/markets/{market_id}")
        if isinstance(data, dict):
            return data
        if data is not None:
            logger.warning(f"Unexpected market payload for {market_id}: {type(data)}")
        return None

    def _get_order_book(self, market_id: str, outcome: str) -> Optional[dict]:
        market = self._get_market(market_id)
        if not market:
            return None

        token_id = _token_for_outcome(market, outcome)
        if not token_id:
            logger.debug(f"No CLOB token for {market_id} outcome {outcome}")
            return None

        book = self._get_json(f"{Config.POLYMARKET_CLOB_URL}/book", params={"token_id": token_id})
        return book if isinstance(book, dict) else None

    def _get_json(self, url: str, params: Optional[dict] = None) -> Optional[Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        except Timeout:
            logger.warning(f"Request to {url} timed out after {self.timeout}s")
            return None

        except ConnectionError as e:
            logger.warning(f"Connection error requesting {url}: {e}")
            return None

        except RequestException as e:
            logger.warning(f"Request to {url} failed: {e}")
            return None

        except ValueError as e:
            logger.warning(f"Failed to parse JSON from {url}: {e}")
            return None


def _json_list(value: Any) -> list:
    """Gamma encodes some list fields as JSON strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _outcome_index(market: dict, outcome: str) -> Optional[int]:
    names = [str(name).upper() for name in _json_list(market.get("outcomes"))]
    wanted = outcome.upper()
    if wanted in names:
        return names.index(wanted)
    if not names:
        # Binary markets list YES first
        return {"YES": 0, "NO": 1}.get(wanted)
    return None


def _parse_outcome_prices(market: dict) -> dict[str, float]:
    prices = _json_list(market.get("outcomePrices"))
    result: dict[str, float] = {}
    for outcome in ("YES", "NO"):
        idx = _outcome_index(market, outcome)
        if idx is None or idx >= len(prices):
            continue
        price = safe_float(prices[idx], default=None)
        if price is not None:
            result[outcome] = price
    return result


def _token_for_outcome(market: dict, outcome: str) -> Optional[str]:
    tokens = _json_list(market.get("clobTokenIds"))
    idx = _outcome_index(market, outcome)
    if idx is None or idx >= len(tokens):
        return None
    return str(tokens[idx])
