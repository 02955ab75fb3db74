import json
from unittest.mock import MagicMock

import pytest
from requests.exceptions import Timeout

from alithos.market_data import PolymarketDataFetcher

MARKET = {
    "id": "m1",
    "question": "Will the Fed cut rates before September?",
    "category": "Finance",
    "endDate": "2025-06-21T00:00:00Z",
    "outcomes": json.dumps(["Yes", "No"]),
    "outcomePrices": json.dumps(["0.65", "0.35"]),
    "clobTokenIds": json.dumps(["tok-yes", "tok-no"]),
    "conditionId": "0xabc",
    "volume24hr": 12500.5,
    "resolutionSource": "Federal Reserve",
    "description": "Resolves YES if rates are cut.",
}

BOOK = {
    "bids": [{"price": "0.63", "size": "100"}, {"price": "0.60", "size": "50"}],
    "asks": [{"price": "0.66", "size": "80"}, {"price": "0.70", "size": "20"}],
}


def _response(data):
    response = MagicMock()
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def trades():
    return []


@pytest.fixture
def session(trades):
    def _get(url, params=None, timeout=None):
        if "/markets/" in url:
            return _response(MARKET)
        if url.endswith("/book"):
            assert params == {"token_id": "tok-yes"}
            return _response(BOOK)
        if url.endswith("/trades"):
            return _response(trades)
        raise AssertionError(url)

    fake = MagicMock()
    fake.headers = {}
    fake.get.side_effect = _get
    return fake


class TestSignals:

    def test_price_as_percent(self, session):
        assert PolymarketDataFetcher(session=session).get_price("m1") == pytest.approx(65.0)

    def test_volume(self, session):
        assert PolymarketDataFetcher(session=session).get_volume("m1") == 12500.5

    def test_depth_sums_both_sides(self, session):
        assert PolymarketDataFetcher(session=session).get_depth("m1") == pytest.approx(250.0)

    def test_spread_is_fraction(self, session):
        assert PolymarketDataFetcher(session=session).get_spread("m1") == pytest.approx(0.03)

    def test_flow_not_cached(self, session):
        assert PolymarketDataFetcher(session=session).get_flow("m1") is None

    def test_compute_flow_decays_with_age(self, session, trades, clock):
        now_ts = clock().timestamp()
        trades.extend([
            {"outcome": "Yes", "size": 100, "timestamp": now_ts},
            {"outcome": "Yes", "size": 100, "timestamp": now_ts - 1800},
            {"outcome": "Yes", "size": 100, "timestamp": now_ts - 7200},
            {"outcome": "No", "size": 999, "timestamp": now_ts},
        ])

        flow = PolymarketDataFetcher(session=session, clock=clock).compute_flow("m1", "YES")

        assert flow == pytest.approx(150.0)

    def test_failures_are_none(self):
        failing = MagicMock()
        failing.headers = {}
        failing.get.side_effect = Timeout()
        fetcher = PolymarketDataFetcher(session=failing)

        assert fetcher.get_price("m1") is None
        assert fetcher.get_depth("m1") is None
        assert fetcher.compute_flow("m1") is None
        assert fetcher.fetch_market_snapshot("m1") is None


class TestSnapshot:

    def test_normalizes_market(self, session):
        snapshot = PolymarketDataFetcher(session=session).fetch_market_snapshot("m1")

        assert snapshot.market_id == "m1"
        assert snapshot.outcome_prices == {"YES": 0.65, "NO": 0.35}
        assert snapshot.yes_price == 0.65
        assert snapshot.end_date.year == 2025
        assert snapshot.resolution_criteria == "Resolves YES if rates are cut."
