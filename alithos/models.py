"""
Data models for the terminal core.

This module defines the dataclasses shared by the alert engine and the
market research pipeline: alerts with their conditions and actions,
notification preferences, market snapshots, graded sources and the
intermediate and final research results.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Optional

from alithos.utils import parse_datetime


CONDITION_TYPES = ("price", "volume", "depth", "flow", "spread")
CONDITION_OPERATORS = ("gt", "lt", "gte", "lte", "eq")
ACTION_TYPES = ("notify", "order", "webhook")
OUTCOMES = ("YES", "NO")
ORDER_SIDES = ("buy", "sell")
SOURCE_GRADES = ("A", "B", "C", "D")
VERDICTS = ("YES", "NO", "UNCERTAIN")


@dataclass
class AlertCondition:
    """
    A single numeric comparison against a live market signal.

    Attributes:
        type: Signal to read ("price", "volume", "depth", "flow", "spread")
        operator: Comparison ("gt", "lt", "gte", "lte", "eq")
        value: Threshold. Price and spread are percentages (0-100),
            volume and depth are currency units, flow is a trade-size proxy.
    """
    type: str
    operator: str
    value: float

    def to_dict(self) -> dict:
        return {"type": self.type, "operator": self.operator, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "AlertCondition":
        return cls(
            type=str(data["type"]),
            operator=str(data["operator"]),
            value=float(data["value"]),
        )


@dataclass
class OrderParams:
    """Order to place when an alert fires."""
    market_id: str
    outcome: str
    amount: float
    side: str

    def to_dict(self) -> dict:
        return {
            "marketId": self.market_id,
            "outcome": self.outcome,
            "amount": self.amount,
            "type": self.side,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderParams":
        return cls(
            market_id=str(data.get("marketId", data.get("market_id", ""))),
            outcome=str(data.get("outcome", "")),
            amount=float(data.get("amount", 0.0)),
            side=str(data.get("type", data.get("side", ""))),
        )


@dataclass
class AlertAction:
    """
    Something to do when an alert fires.

    Attributes:
        type: "notify", "order" or "webhook"
        message: Notification text (notify, webhook)
        order_params: Order to place (order)
        webhook_url: Endpoint to POST to (webhook)
    """
    type: str
    message: Optional[str] = None
    order_params: Optional[OrderParams] = None
    webhook_url: Optional[str] = None

    def to_dict(self) -> dict:
        config: dict[str, Any] = {}
        if self.message is not None:
            config["message"] = self.message
        if self.order_params is not None:
            config["orderParams"] = self.order_params.to_dict()
        if self.webhook_url is not None:
            config["webhookUrl"] = self.webhook_url
        return {"type": self.type, "config": config}

    @classmethod
    def from_dict(cls, data: dict) -> "AlertAction":
        config = data.get("config") or {}
        order_params = config.get("orderParams")
        return cls(
            type=str(data["type"]),
            message=config.get("message"),
            order_params=OrderParams.from_dict(order_params) if order_params else None,
            webhook_url=config.get("webhookUrl"),
        )


@dataclass
class Alert:
    """
    A user-defined multi-condition alert.

    Conditions are combined with AND. Every action runs when the alert
    fires. An alert without a market id is global.

    Attributes:
        id: Unique alert identifier
        name: Display name
        conditions: Conditions that must all pass
        actions: Actions executed on trigger
        market_id: Market the conditions are evaluated against
        is_active: Inactive alerts are skipped by the scheduler
        cooldown_period_minutes: Minimum minutes between triggers (None = no cooldown)
        last_triggered: Time of the most recent trigger
    """
    id: str
    name: str
    conditions: list[AlertCondition] = field(default_factory=list)
    actions: list[AlertAction] = field(default_factory=list)
    market_id: Optional[str] = None
    is_active: bool = True
    cooldown_period_minutes: Optional[int] = None
    last_triggered: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "marketId": self.market_id,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "isActive": self.is_active,
            "cooldownPeriodMinutes": self.cooldown_period_minutes,
            "lastTriggered": self.last_triggered.isoformat() if self.last_triggered else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alert":
        cooldown = data.get("cooldownPeriodMinutes")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            market_id=data.get("marketId"),
            conditions=[AlertCondition.from_dict(c) for c in data.get("conditions", [])],
            actions=[AlertAction.from_dict(a) for a in data.get("actions", [])],
            is_active=bool(data.get("isActive", True)),
            cooldown_period_minutes=int(cooldown) if cooldown is not None else None,
            last_triggered=parse_datetime(data.get("lastTriggered")),
        )


@dataclass
class NotificationPreferences:
    """
    Per-user delivery preferences for triggered alerts.

    The defaults are what the dispatcher uses when preferences cannot be
    fetched: desktop notifications on, email off, webhooks to the
    alert's own URL.
    """
    browser: bool = True
    email: bool = False
    webhook: bool = True
    webhook_url: Optional[str] = None
    telegram: bool = False
    telegram_chat_id: Optional[str] = None


@dataclass
class MarketSnapshot:
    """
    Point-in-time view of a market used by the research pipeline.

    Attributes:
        market_id: Market identifier
        question: Market question
        category: Market category/topic
        end_date: Resolution date
        outcome_prices: Outcome prices keyed by "YES"/"NO" (0.0 to 1.0)
        resolution_source: Where resolution data comes from
        resolution_criteria: How the market resolves
    """
    market_id: str
    question: str
    category: Optional[str] = None
    end_date: Optional[datetime] = None
    outcome_prices: Optional[dict[str, float]] = None
    resolution_source: Optional[str] = None
    resolution_criteria: Optional[str] = None

    @property
    def yes_price(self) -> Optional[float]:
        if not self.outcome_prices:
            return None
        return self.outcome_prices.get("YES")


@dataclass
class SourceDocument:
    """A raw research source as returned by source gathering."""
    title: str
    url: str
    content: str
    published_date: Optional[str] = None
    author: Optional[str] = None
    domain: Optional[str] = None


@dataclass
class GradedSource:
    """A source with its four 0-1 quality scores and letter grade."""
    source: SourceDocument
    grade: str
    credibility_score: float
    recency_score: float
    bias_score: float
    clarity_score: float
    explanation: str


@dataclass
class ResearchStrategy:
    """What to look for when researching a market question."""
    market_question: str
    key_information_needed: list[str]
    search_queries: list[str]
    important_factors: list[str]
    timeline_considerations: str


@dataclass
class AgentAnalysis:
    """Parsed output of one analysis stage."""
    agent_name: str
    output: str
    confidence: float
    reasoning: str


@dataclass
class AnalysisResult:
    """
    Output of the analyst, critic and aggregator stages.

    Attributes:
        overall_confidence: 0.3 * analyst + 0.2 * critic + 0.5 * aggregator
        intermediate: Raw stage outputs keyed by "analystOutput",
            "criticOutput" and "aggregatorOutput"
    """
    analyst: AgentAnalysis
    critic: AgentAnalysis
    aggregator: AgentAnalysis
    overall_confidence: float
    intermediate: dict[str, str] = field(default_factory=dict)


@dataclass
class BayesianProbabilities:
    yes: float
    no: float
    uncertain: float


@dataclass
class WeightedEvidence:
    grade_a_weight: float = 0.0
    grade_b_weight: float = 0.0
    grade_c_weight: float = 0.0
    grade_d_weight: float = 0.0

    def for_grade(self, grade: str) -> float:
        return {
            "A": self.grade_a_weight,
            "B": self.grade_b_weight,
            "C": self.grade_c_weight,
            "D": self.grade_d_weight,
        }.get(grade, 0.0)


@dataclass
class BayesianResult:
    probabilities: BayesianProbabilities
    confidence: float
    weighted_evidence: WeightedEvidence
    explanation: str


@dataclass
class MarketResearchResult:
    """Complete output of one research run."""
    market_id: str
    market_question: str
    verdict: str
    confidence: float
    graded_sources: list[GradedSource]
    analysis_result: AnalysisResult
    bayesian_result: BayesianResult
    research_strategy: ResearchStrategy
    timestamp: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "MarketResearchResult":
        analysis = data["analysis_result"]
        bayesian = data["bayesian_result"]
        return cls(
            market_id=data["market_id"],
            market_question=data["market_question"],
            verdict=data["verdict"],
            confidence=data["confidence"],
            graded_sources=[
                GradedSource(**{**gs, "source": SourceDocument(**gs["source"])})
                for gs in data.get("graded_sources", [])
            ],
            analysis_result=AnalysisResult(
                analyst=AgentAnalysis(**analysis["analyst"]),
                critic=AgentAnalysis(**analysis["critic"]),
                aggregator=AgentAnalysis(**analysis["aggregator"]),
                overall_confidence=analysis["overall_confidence"],
                intermediate=analysis.get("intermediate") or {},
            ),
            bayesian_result=BayesianResult(
                probabilities=BayesianProbabilities(**bayesian["probabilities"]),
                confidence=bayesian["confidence"],
                weighted_evidence=WeightedEvidence(**bayesian["weighted_evidence"]),
                explanation=bayesian["explanation"],
            ),
            research_strategy=ResearchStrategy(**data["research_strategy"]),
            timestamp=data["timestamp"],
        )
