"""
End-to-end market research pipeline.

A run goes: cache lookup, market snapshot, strategy, source gathering,
grading (sorted A to D), multi-agent analysis, Bayesian fusion, verdict,
then persistence. Everything runs sequentially on the calling thread.
The overall time budget is checked between stages; an LLM call already
in flight is not interrupted.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from alithos.bayesian import apply_bayesian_reasoning, determine_final_verdict
from alithos.config import Config
from alithos.exceptions import MarketNotFoundError, ResearchError
from alithos.market_data import PolymarketDataFetcher
from alithos.models import MarketResearchResult, MarketSnapshot, ResearchStrategy, SourceDocument
from alithos.multi_agent import MultiAgentAnalyzer
from alithos.research_agent import gather_sources
from alithos.research_strategy import plan_research_strategy
from alithos.source_grading import grade_sources
from alithos.storage import Storage
from alithos.utils import utc_now

# Configure module logger
logger = logging.getLogger(__name__)

SourceGatherer = Callable[[MarketSnapshot, ResearchStrategy], list[SourceDocument]]


class MarketResearchPipeline:
    """
    Runs AI market research for one market at a time.

    Args:
        fetcher: Provides the market snapshot (default: PolymarketDataFetcher)
        analyzer: Multi-agent analyzer (default: Claude-backed)
        gatherer: Collects raw sources for a market and strategy
        storage: Research cache and history. If None, nothing is cached
        timeout_seconds: Overall budget. If None, uses Config.RESEARCH_TIMEOUT
        cache_hours: Max cached-result age. If None, uses Config.RESEARCH_CACHE_HOURS
        monotonic: Clock for the time budget
        now: Clock for timestamps and grading
    """

    def __init__(
        self,
        fetcher: Optional[PolymarketDataFetcher] = None,
        analyzer: Optional[MultiAgentAnalyzer] = None,
        gatherer: SourceGatherer = gather_sources,
        storage: Optional[Storage] = None,
        timeout_seconds: Optional[float] = None,
        cache_hours: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
    ):
        self.fetcher = fetcher or PolymarketDataFetcher()
        self.analyzer = analyzer or MultiAgentAnalyzer()
        self.gatherer = gatherer
        self.storage = storage
        self.timeout_seconds = timeout_seconds or Config.RESEARCH_TIMEOUT
        self.cache_hours = cache_hours if cache_hours is not None else Config.RESEARCH_CACHE_HOURS
        self.monotonic = monotonic
        self.now = now

    def run(self, market_id: str, force_refresh: bool = False) -> MarketResearchResult:
        """
        Research a market and return the verdict.

        Args:
            market_id: Market to research
            force_refresh: Ignore a cached result

        Returns:
            MarketResearchResult (possibly from cache)

        Raises:
            MarketNotFoundError: The market snapshot could not be loaded
            ResearchError: No sources, source gathering failed or the time budget ran out
            AgentAuthenticationError: The LLM provider rejected the API key
            AnalysisError: A multi-agent stage failed
        """
        if not force_refresh:
            cached = self._cached_result(market_id)
            if cached is not None:
                return cached

        started = self.monotonic()
        logger.info(f"Starting research for market: {market_id}")

        # Step 1: Market data
        market = self.fetcher.fetch_market_snapshot(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        self._check_budget(started, "market data")

        # Step 2: Strategy
        logger.info("Planning research strategy...")
        strategy = plan_research_strategy(market, self.now())

        # Step 3: Sources
        logger.info("Gathering sources...")
        sources = self._gather(market, strategy)
        if not sources:
            raise ResearchError("No research results found. Please try again later.", retryable=True)
        self._check_budget(started, "source gathering")

        # Step 4: Grading, best first
        logger.info(f"Grading {len(sources)} sources...")
        graded = grade_sources(sources, self.now())

        # Step 5: Multi-agent analysis
        logger.info("Running multi-agent analysis...")
        analysis = self.analyzer.analyze(market, graded)
        self._check_budget(started, "multi-agent analysis")

        # Step 6: Bayesian fusion and verdict
        logger.info("Applying Bayesian reasoning...")
        bayesian = apply_bayesian_reasoning(graded, analysis, market)
        verdict = determine_final_verdict(bayesian.probabilities)

        result = MarketResearchResult(
            market_id=market.market_id,
            market_question=market.question,
            verdict=verdict,
            confidence=bayesian.confidence,
            graded_sources=graded,
            analysis_result=analysis,
            bayesian_result=bayesian,
            research_strategy=strategy,
            timestamp=self.now().isoformat(),
        )

        elapsed = self.monotonic() - started
        logger.info(
            f"Research complete for {market_id}: {verdict} "
            f"(confidence {bayesian.confidence:.2f}, {elapsed:.1f}s)"
        )

        self._persist(result)
        return result

    def _cached_result(self, market_id: str) -> Optional[MarketResearchResult]:
        if self.storage is None:
            return None

        cached = self.storage.get_cached_research(market_id, self.cache_hours)
        if cached is not None:
            logger.info(f"Returning cached research for {market_id} from {cached.timestamp}")
        return cached

    def _gather(self, market: MarketSnapshot, strategy: ResearchStrategy) -> list[SourceDocument]:
        try:
            return self.gatherer(market, strategy)
        except ResearchError:
            raise
        except Exception as e:
            logger.error(f"Source gathering failed for {market.market_id}: {e}", exc_info=True)
            raise ResearchError(f"Research agent failed: {e}", retryable=True) from e

    def _check_budget(self, started: float, stage: str) -> None:
        elapsed = self.monotonic() - started
        if elapsed > self.timeout_seconds:
            raise ResearchError(
                f"Research timed out after {self.timeout_seconds:.0f}s (during {stage}). Please try again.",
                retryable=True,
            )

    def _persist(self, result: MarketResearchResult) -> None:
        if self.storage is None:
            return

        try:
            if not self.storage.save_research_result(result):
                logger.warning(f"Research result for {result.market_id} was not saved")
        except Exception as e:
            logger.error(f"Failed to save research result for {result.market_id}: {e}")
