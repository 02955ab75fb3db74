"""Shared fixtures: fixed clocks, fake market data, sample alerts and sources."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from alithos.bayesian import apply_bayesian_reasoning, determine_final_verdict
from alithos.models import (
    AgentAnalysis,
    Alert,
    AlertAction,
    AlertCondition,
    AnalysisResult,
    MarketResearchResult,
    MarketSnapshot,
    SourceDocument,
)
from alithos.research_strategy import plan_research_strategy
from alithos.source_grading import grade_sources
from alithos.storage import Storage

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class MutableClock:
    """Callable clock a test can move forward."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def fetcher():
    """MarketDataFetcher stand-in with a calm market by default."""
    fake = MagicMock()
    fake.get_price.return_value = 50.0
    fake.get_volume.return_value = 1000.0
    fake.get_depth.return_value = 2000.0
    fake.get_spread.return_value = 0.02
    fake.get_flow.return_value = None
    fake.compute_flow.return_value = 12.5
    return fake


@pytest.fixture
def make_alert():
    def _make(
        conditions=None,
        actions=None,
        alert_id="alert-1",
        market_id="m1",
        cooldown=None,
        last_triggered=None,
        is_active=True,
    ) -> Alert:
        return Alert(
            id=alert_id,
            name=f"Alert {alert_id}",
            market_id=market_id,
            conditions=conditions if conditions is not None else [AlertCondition("price", "gt", 60)],
            actions=actions if actions is not None else [AlertAction(type="notify", message="Price above 60%")],
            is_active=is_active,
            cooldown_period_minutes=cooldown,
            last_triggered=last_triggered,
        )
    return _make


@pytest.fixture
def market():
    return MarketSnapshot(
        market_id="m1",
        question="Will the Fed cut rates before September?",
        category="Finance",
        end_date=NOW + timedelta(days=20),
        outcome_prices={"YES": 0.7, "NO": 0.3},
        resolution_source="Federal Reserve press releases",
        resolution_criteria="Resolves YES if the target range is lowered.",
    )


@pytest.fixture
def reuters_source():
    content = (
        "The central bank held its benchmark rate steady on Wednesday. "
        "Officials said inflation has cooled over the past three months. "
        "Several policymakers signaled that a cut could come later this year. "
        "Markets now price a high chance of easing before the autumn meeting."
    )
    return SourceDocument(
        title="Fed holds rates, signals cuts ahead",
        url="https://www.reuters.com/markets/fed-holds-rates",
        content=content,
        published_date=(NOW - timedelta(days=2)).isoformat(),
        author="Jane Doe",
        domain="reuters.com",
    )


@pytest.fixture
def blog_source():
    return SourceDocument(
        title="Obviously the worst Fed ever",
        url="https://someone.blogspot.com/fed",
        content="Sadly the Fed must act. Clearly terrible.",
        published_date=(NOW - timedelta(days=800)).isoformat(),
        domain="someone.blogspot.com",
    )


@pytest.fixture
def analysis():
    def _agent(name, confidence):
        return AgentAnalysis(agent_name=name, output="", confidence=confidence, reasoning="r")

    return AnalysisResult(
        analyst=_agent("Analyst", 0.6),
        critic=_agent("Critic", 0.6),
        aggregator=_agent("Aggregator", 0.6),
        overall_confidence=0.6,
    )


@pytest.fixture
def storage(tmp_path):
    return Storage(db_path=tmp_path / "alithos.db")


@pytest.fixture
def research_result(market, reuters_source, analysis, now):
    """A complete research result built from the real grading and fusion steps."""
    graded = grade_sources([reuters_source], now)
    bayesian = apply_bayesian_reasoning(graded, analysis, market)
    return MarketResearchResult(
        market_id=market.market_id,
        market_question=market.question,
        verdict=determine_final_verdict(bayesian.probabilities),
        confidence=bayesian.confidence,
        graded_sources=graded,
        analysis_result=analysis,
        bayesian_result=bayesian,
        research_strategy=plan_research_strategy(market, now),
        timestamp=now.isoformat(),
    )
