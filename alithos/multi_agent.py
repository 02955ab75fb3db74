"""
Multi-agent analysis: analyst, then critic, then aggregator.

Each stage is one agent turn. A stage's full text output is handed
verbatim to the stages after it, so the stages run strictly in order.
Any stage failure aborts the analysis; there is no partial result.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from alithos.exceptions import AgentAuthenticationError, AnalysisError
from alithos.llm_client import AgentConfig, AgentRuntime, ClaudeAgentRuntime
from alithos.models import AgentAnalysis, AnalysisResult, GradedSource, MarketSnapshot
from alithos.utils import clamp, days_until, safe_float, safe_json_loads

# Configure module logger
logger = logging.getLogger(__name__)

ANALYST_WEIGHT = 0.3
CRITIC_WEIGHT = 0.2
AGGREGATOR_WEIGHT = 0.5

DEFAULT_CONFIDENCE = 0.5
DEFAULT_REASONING = "Analysis provided"
SOURCE_CONTENT_CHARS = 500

_CONFIDENCE_PATTERNS = (
    re.compile(r"CONFIDENCE:\s*\**\s*([0-9]*\.?[0-9]+)", re.IGNORECASE),
    re.compile(r"confidence[:\s]+([0-9]*\.?[0-9]+)", re.IGNORECASE),
)
_REASONING_PATTERNS = (
    re.compile(r"REASONING:\s*(.+?)(?:\n|$)", re.IGNORECASE | re.DOTALL),
    re.compile(r"reasoning[:\s]+(.+?)(?:\n|$)", re.IGNORECASE | re.DOTALL),
)


@dataclass
class Stage:
    """
    One step of the analysis pipeline.

    Attributes:
        name: Stage name; its raw output is stored under this key
        agent: Agent that runs the stage
        build_prompt: Builds the prompt from the outputs of earlier stages
    """
    name: str
    agent: AgentConfig
    build_prompt: Callable[[dict[str, str]], str]

    def run(self, runtime: AgentRuntime, outputs: dict[str, str]) -> str:
        return runtime.run(self.agent, self.build_prompt(outputs)) or ""


def run_stages(runtime: AgentRuntime, stages: list[Stage]) -> dict[str, str]:
    """
    Run stages in order, feeding each the outputs collected so far.

    Returns:
        Raw output of every stage keyed by stage name

    Raises:
        AgentAuthenticationError: Unchanged, from any stage
        AnalysisError: Any other stage failure
    """
    outputs: dict[str, str] = {}

    for index, stage in enumerate(stages, start=1):
        logger.info(f"Step {index}/{len(stages)}: running {stage.name} agent...")
        try:
            outputs[stage.name] = stage.run(runtime, outputs)
        except AgentAuthenticationError:
            raise
        except Exception as e:
            raise AnalysisError(f"Multi-agent analysis failed: {stage.name}: {e}", stage=stage.name) from e
        logger.info(f"Step {index}/{len(stages)}: {stage.name} agent completed")

    return outputs


def format_sources(graded_sources: list[GradedSource]) -> str:
    blocks = []
    for index, gs in enumerate(graded_sources, start=1):
        source = gs.source
        content = source.content[:SOURCE_CONTENT_CHARS]
        if len(source.content) > SOURCE_CONTENT_CHARS:
            content += "..."
        blocks.append(
            f"Source {index} (Grade {gs.grade}):\n"
            f"- Title: {source.title}\n"
            f"- URL: {source.url}\n"
            f"- Domain: {source.domain or 'Unknown'}\n"
            f"- Published: {source.published_date or 'Unknown'}\n"
            f"- Grade Explanation: {gs.explanation}\n"
            f"- Content: {content}"
        )
    return "\n\n".join(blocks) or "No sources available."


def format_market(market: MarketSnapshot) -> str:
    parts = []

    if market.question:
        parts.append(f"Question: {market.question}")

    if market.category:
        parts.append(f"Category: {market.category}")

    if market.end_date:
        parts.append(
            f"End Date: {market.end_date.strftime('%Y-%m-%d')} "
            f"({days_until(market.end_date)} days remaining)"
        )

    if market.resolution_source:
        parts.append(f"Resolution Source: {market.resolution_source}")

    if market.resolution_criteria:
        parts.append(f"Resolution Criteria: {market.resolution_criteria}")

    if market.yes_price is not None:
        parts.append(f"Current Market Probability: {market.yes_price * 100:.1f}% YES")

    return "\n".join(parts)


def build_stages(
    market: MarketSnapshot,
    graded_sources: list[GradedSource],
    model: Optional[str] = None
) -> list[Stage]:
    """Analyst, critic and aggregator stages for one market."""
    analyst = AgentConfig(
        name="Analyst",
        model=model,
        instructions=f"""You are a market analyst specializing in prediction markets. Your role is to analyze provided sources and market data to determine the likelihood of a market outcome.

Market Question: {market.question}
Market Context: {format_market(market)}

Graded Sources (A-D):
{format_sources(graded_sources)}

Your task:
1. Analyze all provided sources carefully
2. Identify key evidence supporting YES and NO outcomes
3. Assess the strength of the evidence
4. Consider the credibility and recency of sources
5. Provide your analysis with a confidence score (0-1) and clear reasoning

Format your response as:
ANALYSIS: [Your analysis of the evidence]
CONFIDENCE: [0-1 confidence score]
REASONING: [Your reasoning for the confidence score]""",
    )

    critic = AgentConfig(
        name="Critic",
        model=model,
        instructions="""You are a critical reviewer specializing in analyzing market predictions. Your role is to review the analyst's findings for accuracy, identify any biases, and assess completeness.

Review the analyst's findings and:
1. Check for accuracy and logical consistency
2. Identify any potential biases or blind spots
3. Assess if important factors were missed
4. Evaluate if the confidence score is justified
5. Provide constructive criticism

Format your response as:
REVIEW: [Your review of the analyst's findings]
ACCURACY: [Assessment of accuracy]
BIAS: [Any biases or blind spots identified]
COMPLETENESS: [Assessment of completeness]
CONFIDENCE: [Your confidence in the analyst's assessment, 0-1]
REASONING: [Why you assigned that confidence]""",
    )

    aggregator = AgentConfig(
        name="Aggregator",
        model=model,
        instructions=f"""You are a synthesizer that combines insights from the analyst and critic into a final, balanced assessment.

Market Question: {market.question}

Your task:
1. Synthesize the analyst's findings and critic's review
2. Create a balanced, final assessment
3. Resolve any conflicts between analyst and critic
4. Provide a final confidence score (0-1)
5. Give clear reasoning for the final assessment

Format your response as:
ASSESSMENT: [Final balanced assessment]
CONFIDENCE: [Final confidence score, 0-1]
REASONING: [Your reasoning for the final assessment and confidence]""",
    )

    return [
        Stage(
            name="analyst",
            agent=analyst,
            build_prompt=lambda outputs: (
                "Analyze the market question and graded sources to determine the likelihood of the outcome."
            ),
        ),
        Stage(
            name="critic",
            agent=critic,
            build_prompt=lambda outputs: (
                f"Review the following analyst's findings:\n{outputs['analyst']}\n\n"
                "Provide your critical review of the analyst's findings."
            ),
        ),
        Stage(
            name="aggregator",
            agent=aggregator,
            build_prompt=lambda outputs: (
                "Synthesize the following analyst's findings and critic's review into a final assessment:\n\n"
                f"ANALYST FINDINGS:\n{outputs['analyst']}\n\n"
                f"CRITIC REVIEW:\n{outputs['critic']}\n\n"
                "Provide your final balanced assessment."
            ),
        ),
    ]


def parse_agent_output(output: str, agent_name: str) -> AgentAnalysis:
    """
    Extract confidence and reasoning from an agent's output.

    A JSON object with "confidence"/"reasoning" keys wins; otherwise the
    CONFIDENCE:/REASONING: lines are used. Confidence is clamped to [0, 1]
    and defaults to 0.5 when neither form is present.
    """
    confidence: Optional[float] = None
    reasoning: Optional[str] = None

    data = safe_json_loads(output)
    if isinstance(data, dict) and "confidence" in data:
        confidence = safe_float(data.get("confidence"), None)
        if data.get("reasoning"):
            reasoning = str(data["reasoning"]).strip()

    if confidence is None:
        for pattern in _CONFIDENCE_PATTERNS:
            match = pattern.search(output or "")
            if match:
                confidence = safe_float(match.group(1), None)
                break

    if reasoning is None:
        for pattern in _REASONING_PATTERNS:
            match = pattern.search(output or "")
            if match and match.group(1).strip():
                reasoning = match.group(1).strip()
                break

    if confidence is None:
        logger.debug(f"No confidence in {agent_name} output, using {DEFAULT_CONFIDENCE}")
        confidence = DEFAULT_CONFIDENCE

    return AgentAnalysis(
        agent_name=agent_name,
        output=output or "",
        confidence=clamp(confidence, 0.0, 1.0),
        reasoning=reasoning or DEFAULT_REASONING,
    )


class MultiAgentAnalyzer:
    """
    Runs the analyst, critic and aggregator stages for a market.

    Args:
        runtime: Agent runtime (default: ClaudeAgentRuntime)
        stage_factory: Builds the stages for a market and its graded sources
    """

    def __init__(
        self,
        runtime: Optional[AgentRuntime] = None,
        stage_factory: Callable[[MarketSnapshot, list[GradedSource]], list[Stage]] = build_stages,
    ):
        self.runtime = runtime or ClaudeAgentRuntime()
        self.stage_factory = stage_factory

    def analyze(self, market: MarketSnapshot, graded_sources: list[GradedSource]) -> AnalysisResult:
        """
        Run the three stages and combine their confidences.

        Raises:
            AgentAuthenticationError: The provider rejected the API key
            AnalysisError: Any other stage failure
        """
        logger.info(f"Running multi-agent analysis for {market.market_id} ({len(graded_sources)} sources)")

        stages = self.stage_factory(market, graded_sources)
        outputs = run_stages(self.runtime, stages)

        analyst = parse_agent_output(outputs.get("analyst", ""), "Analyst")
        critic = parse_agent_output(outputs.get("critic", ""), "Critic")
        aggregator = parse_agent_output(outputs.get("aggregator", ""), "Aggregator")

        overall = (
            analyst.confidence * ANALYST_WEIGHT
            + critic.confidence * CRITIC_WEIGHT
            + aggregator.confidence * AGGREGATOR_WEIGHT
        )

        logger.info(
            f"Analysis confidences: analyst={analyst.confidence:.2f}, "
            f"critic={critic.confidence:.2f}, aggregator={aggregator.confidence:.2f}, "
            f"overall={overall:.2f}"
        )

        return AnalysisResult(
            analyst=analyst,
            critic=critic,
            aggregator=aggregator,
            overall_confidence=overall,
            intermediate={
                "analystOutput": outputs.get("analyst", ""),
                "criticOutput": outputs.get("critic", ""),
                "aggregatorOutput": outputs.get("aggregator", ""),
            },
        )
