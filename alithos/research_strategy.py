"""
Research strategy planning.

This module analyzes a market question and decides what to look for:
the information needed, the search queries to run, the factors that
matter and how urgent the timeline is. Planning is deterministic and
does no I/O.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from alithos.models import MarketSnapshot, ResearchStrategy
from alithos.utils import days_until, utc_now

# Configure module logger
logger = logging.getLogger(__name__)

MAX_QUERIES = 5
MAX_KEY_TERMS = 5

STOP_WORDS = frozenset({
    "will", "be", "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "are", "was", "were", "been", "have", "has",
    "had", "do", "does", "did", "this", "that", "these", "those", "what", "which", "who",
})


def plan_research_strategy(
    market: MarketSnapshot,
    now: Optional[datetime] = None
) -> ResearchStrategy:
    """
    Plan research for a market question.

    Args:
        market: Market snapshot (question, category, end date)
        now: Reference time for the timeline (default: current UTC time)

    Returns:
        ResearchStrategy for the market
    """
    now = now or utc_now()
    question = market.question or ""
    days_left = days_until(market.end_date, now)

    key_information = identify_key_information(question, market.category, days_left)
    strategy = ResearchStrategy(
        market_question=question,
        key_information_needed=key_information,
        search_queries=generate_search_queries(question, market.category, key_information, now.year),
        important_factors=identify_important_factors(question, market.category),
        timeline_considerations=timeline_considerations(days_left),
    )

    logger.debug(
        f"Planned research for {market.market_id}: "
        f"{len(strategy.search_queries)} queries, {len(strategy.key_information_needed)} information needs"
    )
    return strategy


def identify_key_information(
    question: str,
    category: Optional[str],
    days_left: Optional[int]
) -> list[str]:
    info = [
        "Current status and recent developments",
        "Expert opinions and analysis",
        "Historical context and precedents",
    ]
    question_lower = question.lower()
    category_lower = (category or "").lower()

    if "politics" in category_lower or "election" in category_lower:
        info += [
            "Polling data and voter sentiment",
            "Political developments and endorsements",
            "Election rules and deadlines",
        ]
    elif "sports" in category_lower:
        info += [
            "Team performance and statistics",
            "Player injuries and availability",
            "Recent match results",
        ]
    elif "crypto" in category_lower or "finance" in category_lower:
        info += [
            "Market trends and technical analysis",
            "Regulatory developments",
            "Market sentiment indicators",
        ]
    elif "tech" in category_lower:
        info += [
            "Product announcements and releases",
            "Company financial reports",
            "Industry trends",
        ]

    if "will" in question_lower:
        info += ["Future predictions and forecasts", "Upcoming events and deadlines"]

    if any(word in question_lower for word in ("exceed", "above", "below")):
        info += ["Current metrics and benchmarks", "Trend analysis"]

    if days_left is not None:
        if days_left <= 7:
            info.append("Immediate developments and breaking news")
        elif days_left <= 30:
            info.append("Short-term trends and upcoming events")

    return info


def extract_key_terms(question: str) -> list[str]:
    """Lowercased question words minus stop words and words under 3 chars."""
    words = re.split(r"\s+", question.lower().strip())
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS][:MAX_KEY_TERMS]


def generate_search_queries(
    question: str,
    category: Optional[str],
    key_information: list[str],
    year: int
) -> list[str]:
    """
    Build up to five distinct search queries, most specific first.
    """
    queries = [question]
    key_terms = " ".join(extract_key_terms(question))
    category_lower = (category or "").lower()

    if key_terms:
        queries.append(key_terms)

    if "politics" in category_lower:
        queries += [f"{key_terms} election {year}", f"{key_terms} polling"]
    elif "sports" in category_lower:
        queries += [f"{key_terms} {year} season", f"{key_terms} recent performance"]
    elif "crypto" in category_lower:
        queries += [f"{key_terms} cryptocurrency price", f"{key_terms} blockchain news"]

    if key_terms:
        queries += [f"{key_terms} {info.lower()}" for info in key_information[:3]]

    # Dedupe, keep first occurrence
    unique = list(dict.fromkeys(q.strip() for q in queries if q.strip()))
    return unique[:MAX_QUERIES]


def identify_important_factors(question: str, category: Optional[str]) -> list[str]:
    factors = [
        "Current market probability",
        "Volume and liquidity",
        "Recent price movements",
    ]
    question_lower = question.lower()
    category_lower = (category or "").lower()

    if "before" in question_lower or "by" in question_lower:
        factors.append("Deadline and timeline constraints")

    if "exceed" in question_lower or "above" in question_lower:
        factors += ["Current value vs target threshold", "Trend direction"]

    if "politics" in category_lower:
        factors += ["Public opinion and polling", "Political endorsements"]
    elif "sports" in category_lower:
        factors += ["Team/player statistics", "Injury reports"]
    elif "crypto" in category_lower:
        factors += ["Market sentiment", "Technical indicators"]

    return factors


def timeline_considerations(days_left: Optional[int]) -> str:
    if days_left is None:
        return "Market has no specified end date. Focus on long-term trends and developments."

    if days_left <= 7:
        return f"Market resolves in {days_left} day(s). Focus on immediate developments and breaking news."
    elif days_left <= 30:
        return f"Market resolves in {days_left} days. Consider short-term trends and upcoming events."
    elif days_left <= 90:
        return f"Market resolves in {days_left} days. Balance short-term and medium-term factors."
    else:
        return f"Market resolves in {days_left} days. Consider long-term trends and structural factors."
