"""
Exception hierarchy for the terminal core.

Degraded market data, persistence and dispatch problems are recovered
where they occur and never show up here. These exceptions cover the
failures a caller has to see: bad alert input and research runs that
cannot produce a verdict.
"""

from typing import Optional


class AlithosError(Exception):
    """Base class for all errors raised by the terminal core."""


class AlertValidationError(AlithosError):
    """Alert input failed validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid alert")


class AgentRuntimeError(AlithosError):
    """An LLM agent call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class AgentAuthenticationError(AgentRuntimeError):
    """The LLM provider rejected the configured API key."""


class AnalysisError(AlithosError):
    """A multi-agent analysis stage failed."""

    def __init__(self, message: str, stage: Optional[str] = None):
        self.stage = stage
        super().__init__(message)


class ResearchError(AlithosError):
    """A research run could not complete."""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class MarketNotFoundError(ResearchError):
    """The requested market does not exist upstream."""

    def __init__(self, market_id: str):
        self.market_id = market_id
        super().__init__(f"Market not found: {market_id}", retryable=False)
