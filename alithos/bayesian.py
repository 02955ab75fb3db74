"""
Bayesian fusion of graded sources, agent confidence and the market prior.

The market's implied YES probability is the prior. Graded sources supply
a grade-weighted sentiment likelihood, and the multi-agent confidence
decides how far the posterior moves from the prior toward that
likelihood. The three posteriors (YES, NO, UNCERTAIN) always sum to 1.
"""

import logging
import re

from alithos.models import (
    AnalysisResult,
    BayesianProbabilities,
    BayesianResult,
    GradedSource,
    MarketSnapshot,
    WeightedEvidence,
)
from alithos.utils import clamp

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_PRIOR = 0.5
UNCERTAIN_PRIOR = 0.1

# Relative weight of one source of each grade
GRADE_MULTIPLIERS = {"A": 4.0, "B": 2.0, "C": 1.0, "D": 0.5}
# Grade on a 0-1 scale for the confidence estimate
GRADE_VALUES = {"A": 1.0, "B": 0.75, "C": 0.5, "D": 0.25}

YES_INDICATORS = ("will", "likely", "expected", "probable", "positive", "success", "win")
NO_INDICATORS = ("unlikely", "doubt", "fail", "negative", "reject", "not", "won't")

_YES_PATTERNS = [re.compile(rf"\b{re.escape(w)}\b") for w in YES_INDICATORS]
_NO_PATTERNS = [re.compile(rf"\b{re.escape(w)}\b") for w in NO_INDICATORS]


def apply_bayesian_reasoning(
    graded_sources: list[GradedSource],
    analysis_result: AnalysisResult,
    market: MarketSnapshot
) -> BayesianResult:
    """
    Merge sources, agent analysis and market prior into posteriors.

    Args:
        graded_sources: Graded research sources (may be empty)
        analysis_result: Multi-agent analysis output
        market: Market snapshot; its YES price is the prior

    Returns:
        BayesianResult with normalized posteriors and overall confidence
    """
    prior = market.yes_price if market.yes_price is not None else DEFAULT_PRIOR
    prior = clamp(prior, 0.0, 1.0)
    agent_confidence = clamp(analysis_result.overall_confidence, 0.0, 1.0)

    weights = calculate_grade_weights(graded_sources)
    likelihood = calculate_source_likelihood(graded_sources, weights)
    posterior = calculate_posterior(prior, likelihood, agent_confidence)
    confidence = calculate_confidence(graded_sources, agent_confidence, posterior)

    logger.info(
        f"Bayesian posterior for {market.market_id}: YES={posterior.yes:.3f}, "
        f"NO={posterior.no:.3f}, UNCERTAIN={posterior.uncertain:.3f} (confidence {confidence:.2f})"
    )

    return BayesianResult(
        probabilities=posterior,
        confidence=confidence,
        weighted_evidence=weights,
        explanation=explain(prior, posterior, weights, confidence),
    )


def calculate_grade_weights(graded_sources: list[GradedSource]) -> WeightedEvidence:
    """Share of evidence mass per grade; all zero when there are no sources."""
    total = len(graded_sources) or 1
    raw = {
        grade: sum(1 for gs in graded_sources if gs.grade == grade) / total * multiplier
        for grade, multiplier in GRADE_MULTIPLIERS.items()
    }

    weight_sum = sum(raw.values()) or 1.0
    return WeightedEvidence(
        grade_a_weight=raw["A"] / weight_sum,
        grade_b_weight=raw["B"] / weight_sum,
        grade_c_weight=raw["C"] / weight_sum,
        grade_d_weight=raw["D"] / weight_sum,
    )


def classify_sentiment(text: str) -> str:
    """
    "YES", "NO" or "UNCERTAIN" from counts of distinct indicator words.
    """
    text = text.lower()
    yes_count = sum(1 for p in _YES_PATTERNS if p.search(text))
    no_count = sum(1 for p in _NO_PATTERNS if p.search(text))

    if yes_count > no_count:
        return "YES"
    if no_count > yes_count:
        return "NO"
    return "UNCERTAIN"


def calculate_source_likelihood(
    graded_sources: list[GradedSource],
    weights: WeightedEvidence
) -> BayesianProbabilities:
    mass = {"YES": 0.0, "NO": 0.0, "UNCERTAIN": 0.0}

    for gs in graded_sources:
        text = f"{gs.source.title or ''} {gs.source.content or ''}"
        mass[classify_sentiment(text)] += weights.for_grade(gs.grade)

    total = sum(mass.values()) or 1.0
    return BayesianProbabilities(
        yes=mass["YES"] / total,
        no=mass["NO"] / total,
        uncertain=mass["UNCERTAIN"] / total,
    )


def calculate_posterior(
    prior: float,
    likelihood: BayesianProbabilities,
    agent_confidence: float
) -> BayesianProbabilities:
    """
    Blend prior and likelihood, then normalize to sum to 1.

    Each outcome gets (prior * (1 - c) + likelihood * c) * 0.7 + likelihood * 0.3
    where c is the agent confidence.
    """
    agent_weight = agent_confidence
    source_weight = 1.0 - agent_weight

    def blend(prior_value: float, likelihood_value: float) -> float:
        value = (prior_value * source_weight + likelihood_value * agent_weight) * 0.7 + likelihood_value * 0.3
        return clamp(value, 0.0, 1.0)

    raw_yes = blend(prior, likelihood.yes)
    raw_no = blend(1.0 - prior, likelihood.no)
    raw_uncertain = blend(UNCERTAIN_PRIOR, likelihood.uncertain)

    total = raw_yes + raw_no + raw_uncertain
    if total <= 0:
        logger.warning("Posterior mass is zero, falling back to a uniform split")
        return BayesianProbabilities(yes=1 / 3, no=1 / 3, uncertain=1 / 3)

    return BayesianProbabilities(
        yes=raw_yes / total,
        no=raw_no / total,
        uncertain=raw_uncertain / total,
    )


def average_source_grade(graded_sources: list[GradedSource]) -> float:
    if not graded_sources:
        return 0.5
    return sum(GRADE_VALUES.get(gs.grade, 0.0) for gs in graded_sources) / len(graded_sources)


def calculate_confidence(
    graded_sources: list[GradedSource],
    agent_confidence: float,
    probabilities: BayesianProbabilities
) -> float:
    values = (probabilities.yes, probabilities.no, probabilities.uncertain)
    spread = max(values) - min(values)

    confidence = (
        average_source_grade(graded_sources) * 0.3
        + agent_confidence * 0.4
        + spread * 0.3
    )
    return clamp(confidence, 0.0, 1.0)


def explain(
    prior: float,
    probabilities: BayesianProbabilities,
    weights: WeightedEvidence,
    confidence: float
) -> str:
    parts = [
        f"Prior probability: {prior * 100:.1f}%",
        f"Posterior probabilities: YES {probabilities.yes * 100:.1f}%, "
        f"NO {probabilities.no * 100:.1f}%, UNCERTAIN {probabilities.uncertain * 100:.1f}%",
    ]

    quality = []
    if weights.grade_a_weight > 0:
        quality.append(f"{weights.grade_a_weight * 100:.0f}% Grade A sources")
    if weights.grade_b_weight > 0:
        quality.append(f"{weights.grade_b_weight * 100:.0f}% Grade B sources")
    if quality:
        parts.append(f"Source quality: {', '.join(quality)}")

    parts.append(f"Overall confidence: {confidence * 100:.1f}%")
    return ". ".join(parts)


def determine_final_verdict(probabilities: BayesianProbabilities) -> str:
    """
    Label of the highest posterior. Ties go to YES, then NO, then UNCERTAIN.
    """
    ranked: list[tuple[str, float]] = [
        ("YES", probabilities.yes),
        ("NO", probabilities.no),
        ("UNCERTAIN", probabilities.uncertain),
    ]
    # max() keeps the first of equal values
    return max(ranked, key=lambda item: item[1])[0]
