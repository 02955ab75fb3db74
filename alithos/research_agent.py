"""
Research agent for gathering sources about prediction markets.

This module queries the Perplexity API for articles and documents relevant
to a market's research strategy. It performs NO grading or reasoning - it
only returns the raw sources for the grading and analysis stages.
"""

import json
import logging
from typing import Any, Optional
from urllib.parse import urlparse

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from alithos.config import Config
from alithos.exceptions import ResearchError
from alithos.models import MarketSnapshot, ResearchStrategy, SourceDocument
from alithos.utils import retry_with_backoff, safe_json_loads

# Configure module logger
logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"
MAX_CONTENT_CHARS = 4000


def gather_sources(
    market: MarketSnapshot,
    strategy: ResearchStrategy,
    max_sources: Optional[int] = None,
    session: Optional[requests.Session] = None,
) -> list[SourceDocument]:
    """
    Collect research sources for a market using Perplexity.

    Args:
        market: Market being researched
        strategy: Research strategy whose queries drive the search
        max_sources: Maximum number of sources. If None, uses Config.MAX_SOURCES
        session: HTTP session (default: module-level requests)

    Returns:
        Deduplicated SourceDocuments, at most max_sources of them

    Raises:
        ResearchError: If the API key is missing or the search request fails
    """
    if not Config.PERPLEXITY_API_KEY:
        raise ResearchError("PERPLEXITY_API_KEY not configured", retryable=False)

    limit = max_sources or Config.MAX_SOURCES
    logger.info(f"Gathering sources for market {market.market_id}: {market.question[:50]}...")

    prompt = _build_sources_prompt(market, strategy, limit)

    try:
        data = _call_perplexity_api(prompt, session or requests)
    except Timeout:
        raise ResearchError(
            f"Source search timed out after {Config.API_TIMEOUT}s", retryable=True
        )
    except RequestException as e:
        raise ResearchError(f"Source search failed: {e}", retryable=True)

    sources = _parse_sources(data)
    sources = _dedupe(sources)[:limit]

    logger.info(f"Gathered {len(sources)} sources for market {market.market_id}")
    return sources


def _build_sources_prompt(market: MarketSnapshot, strategy: ResearchStrategy, limit: int) -> str:
    """
    Build the source search prompt.

    The prompt asks for sources only, with explicit instructions to avoid
    reasoning or probability estimation.
    """
    end_date_str = ""
    if market.end_date:
        end_date_str = f"Resolution Date: {market.end_date.strftime('%Y-%m-%d %H:%M:%S UTC')}"

    queries = "\n".join(f"- {q}" for q in strategy.search_queries)
    needs = "\n".join(f"- {n}" for n in strategy.key_information_needed)

    return f"""Find up to {limit} recent, relevant sources for the following prediction market question. Do NOT estimate probabilities or make predictions.

MARKET QUESTION: {market.question}

{end_date_str}

SEARCH QUERIES:
{queries}

INFORMATION NEEDED:
{needs}

For each source, quote or summarize the relevant factual content in a few sentences.

Return your response as valid JSON only (no markdown, no code blocks, no explanatory text). Use this exact structure:

[
  {{
    "title": "Article title",
    "url": "https://example.com/article",
    "content": "Relevant factual content from the source",
    "published_date": "YYYY-MM-DD or null",
    "author": "Author name or null"
  }}
]

If no sources are available, return []. Do not fabricate sources."""


@retry_with_backoff(max_retries=2, initial_delay=2.0, exceptions=(Timeout, ConnectionError))
def _call_perplexity_api(prompt: str, http: Any) -> dict:
    """
    Call Perplexity API with the sources prompt.

    Returns:
        Decoded JSON response

    Raises:
        RequestException: On transport or HTTP errors
    """
    headers = {
        "Authorization": f"Bearer {Config.PERPLEXITY_API_KEY}",
        "Content-Type": "application/json",
    }

    payload = {
        "model": Config.PERPLEXITY_MODEL,
        "messages": [
            {
                "role": "user",
                "content": prompt
            }
        ],
        "temperature": Config.PERPLEXITY_TEMPERATURE,
        "max_tokens": Config.PERPLEXITY_MAX_TOKENS,
    }

    logger.debug(f"Calling Perplexity API with model {Config.PERPLEXITY_MODEL}")

    response = http.post(
        PERPLEXITY_URL,
        json=payload,
        headers=headers,
        timeout=Config.API_TIMEOUT,
    )
    response.raise_for_status()

    try:
        return response.json()
    except ValueError as e:
        raise RequestException(f"Invalid JSON from Perplexity API: {e}")


def _parse_sources(data: dict) -> list[SourceDocument]:
    """
    Extract sources from a Perplexity response.

    The model's JSON list is preferred; the API's own search_results are
    used when the content holds no list of source objects.
    """
    content = ""
    choices = data.get("choices") or []
    if choices:
        content = (choices[0].get("message") or {}).get("content", "") or ""

    parsed = safe_json_loads(content)
    if isinstance(parsed, dict):
        parsed = parsed.get("sources")

    items: list = parsed if isinstance(parsed, list) else []
    if not any(isinstance(item, dict) for item in items):
        logger.warning("No source list in Perplexity content, falling back to search results")
        logger.debug(f"Response data: {json.dumps(data)[:500]}")
        items = [
            {
                "title": r.get("title"),
                "url": r.get("url"),
                "content": r.get("snippet") or r.get("title"),
                "published_date": r.get("date"),
            }
            for r in data.get("search_results") or []
            if isinstance(r, dict)
        ]

    sources = []
    for item in items:
        source = _to_source(item)
        if source is not None:
            sources.append(source)
    return sources


def _to_source(item: Any) -> Optional[SourceDocument]:
    if not isinstance(item, dict):
        return None

    url = str(item.get("url") or "").strip()
    content = str(item.get("content") or "").strip()
    if not url or not content:
        return None

    title = str(item.get("title") or "").strip() or url
    published = item.get("published_date") or item.get("publishedDate")
    author = item.get("author")

    return SourceDocument(
        title=title,
        url=url,
        content=content[:MAX_CONTENT_CHARS],
        published_date=str(published) if published else None,
        author=str(author).strip() if author else None,
        domain=item.get("domain") or domain_from_url(url),
    )


def domain_from_url(url: str) -> Optional[str]:
    """Host part of a URL, lowercased, without a leading "www."."""
    host = urlparse(url).netloc.lower()
    if not host:
        return None
    host = host.split("@")[-1].split(":")[0]
    return host[4:] if host.startswith("www.") else host


def _dedupe(sources: list[SourceDocument]) -> list[SourceDocument]:
    seen: set[str] = set()
    unique = []
    for source in sources:
        key = source.url.rstrip("/")
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique
