"""
Source grading for market research.

Each source gets four independent 0-1 scores (credibility, recency,
bias and clarity). Their average maps to a letter grade from A to D.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from alithos.models import GradedSource, SourceDocument
from alithos.utils import parse_datetime, utc_now

# Configure module logger
logger = logging.getLogger(__name__)

# Reputable news outlets and reference sites
CREDIBLE_DOMAINS = (
    "reuters.com",
    "bloomberg.com",
    "wsj.com",
    "ft.com",
    "economist.com",
    "nytimes.com",
    "washingtonpost.com",
    "bbc.com",
    "bbc.co.uk",
    "theguardian.com",
    "ap.org",
    "apnews.com",
    "cnn.com",
    "forbes.com",
    "techcrunch.com",
    "github.com",
    "stackoverflow.com",
    "wikipedia.org",
)

# User-generated or mixed-quality platforms
SUSPICIOUS_DOMAINS = (
    "blogspot.com",
    "wordpress.com",
    "medium.com",
    "reddit.com",
)

BIAS_INDICATORS = (
    "amazing", "terrible", "worst", "best", "horrible", "fantastic",
    "must", "should", "unfortunately", "fortunately", "sadly",
    "obviously", "clearly", "undoubtedly",
)

GRADE_THRESHOLDS = (
    (0.8, "A"),
    (0.6, "B"),
    (0.4, "C"),
)

GRADE_ORDER = {"A": 0, "B": 1, "C": 2, "D": 3}


def grade_source(source: SourceDocument, now: Optional[datetime] = None) -> GradedSource:
    """
    Grade a source on credibility, recency, bias and clarity.

    Args:
        source: Source to grade
        now: Reference time for recency (default: current UTC time)

    Returns:
        GradedSource with the four sub-scores, the grade and an explanation
    """
    credibility = assess_credibility(source)
    recency = assess_recency(source, now)
    bias = assess_bias(source)
    clarity = assess_clarity(source)

    average = (credibility + recency + bias + clarity) / 4
    grade = score_to_grade(average)

    return GradedSource(
        source=source,
        grade=grade,
        credibility_score=credibility,
        recency_score=recency,
        bias_score=bias,
        clarity_score=clarity,
        explanation=_explain(grade, credibility, recency, bias, source.domain),
    )


def grade_sources(sources: list[SourceDocument], now: Optional[datetime] = None) -> list[GradedSource]:
    """Grade every source and order the results A first, D last."""
    graded = [grade_source(source, now) for source in sources]
    graded = sort_by_grade(graded)

    counts = {g: sum(1 for s in graded if s.grade == g) for g in GRADE_ORDER}
    logger.info(f"Graded {len(graded)} sources: {counts}")
    return graded


def sort_by_grade(graded: list[GradedSource]) -> list[GradedSource]:
    # sorted() is stable, so equal grades keep their gathering order
    return sorted(graded, key=lambda s: GRADE_ORDER.get(s.grade, len(GRADE_ORDER)))


def _matches_domain(domain: str, candidates: tuple) -> bool:
    return any(domain == d or domain.endswith("." + d) for d in candidates)


def assess_credibility(source: SourceDocument) -> float:
    score = 0.5

    if source.domain:
        domain = source.domain.lower().strip()
        if domain.startswith("www."):
            domain = domain[4:]

        if domain.endswith(".edu") or domain.endswith(".gov"):
            score = 0.95
        elif _matches_domain(domain, CREDIBLE_DOMAINS):
            score = 0.9
        elif _matches_domain(domain, SUSPICIOUS_DOMAINS):
            score = 0.3

    if source.author:
        score = min(1.0, score + 0.1)

    return score


def assess_recency(source: SourceDocument, now: Optional[datetime] = None) -> float:
    published = parse_datetime(source.published_date)
    if published is None:
        return 0.5

    now = now or utc_now()
    days_ago = (now - published).total_seconds() / 86400.0

    if days_ago <= 7:
        return 1.0
    elif days_ago <= 30:
        return 0.9
    elif days_ago <= 90:
        return 0.7
    elif days_ago <= 365:
        return 0.5
    else:
        return 0.3


def assess_bias(source: SourceDocument) -> float:
    """Objectivity score: each distinct subjective word present costs 0.15."""
    text = f"{source.title} {source.content}".lower()
    count = sum(1 for word in BIAS_INDICATORS if re.search(rf"\b{word}\b", text))
    return max(0.3, 1.0 - count * 0.15)


def assess_clarity(source: SourceDocument) -> float:
    content = source.content or ""

    if len(content) < 100:
        return 0.3
    if len(content) > 5000:
        return 0.6

    sentence_count = len(re.findall(r"[.!?]+", content))
    word_count = len(content.split())
    if sentence_count > 0 and 10 <= word_count / sentence_count <= 25:
        return 1.0

    return 0.8


def score_to_grade(score: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "D"


def _explain(
    grade: str,
    credibility: float,
    recency: float,
    bias: float,
    domain: Optional[str]
) -> str:
    parts = []

    if credibility >= 0.8:
        parts.append("high credibility")
    elif credibility >= 0.6:
        parts.append("moderate credibility")
    else:
        parts.append("low credibility")

    if recency >= 0.8:
        parts.append("very recent")
    elif recency >= 0.6:
        parts.append("moderately recent")
    else:
        parts.append("older content")

    if bias >= 0.8:
        parts.append("objective")
    elif bias >= 0.6:
        parts.append("somewhat objective")
    else:
        parts.append("potentially biased")

    if domain:
        parts.append(f"from {domain}")

    return f"Grade {grade}: {', '.join(parts)}"
