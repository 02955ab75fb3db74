"""
LLM agent runtime used by the multi-agent analysis.

The analysis depends only on the narrow AgentRuntime interface: run an
agent (name, system instructions, model) on a prompt and get text back.
ClaudeAgentRuntime implements it over the Anthropic Messages API. Unlike
the market data fetcher, failures here raise: a research run cannot
continue without its agents.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from alithos.config import Config
from alithos.exceptions import AgentAuthenticationError, AgentRuntimeError

# Configure module logger
logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

AUTH_FAILED_MESSAGE = (
    "Anthropic API authentication failed. "
    "Please check your ANTHROPIC_API_KEY environment variable."
)


@dataclass
class AgentConfig:
    """
    A named agent: system instructions plus optional model overrides.

    Attributes:
        name: Agent name used in logs and results
        instructions: System prompt
        model: Model id. If None, the runtime's default
        temperature: Sampling temperature. If None, the runtime's default
        max_tokens: Response token cap. If None, the runtime's default
    """
    name: str
    instructions: str
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class AgentRuntime(Protocol):
    def run(self, agent: AgentConfig, prompt: str) -> str:
        ...


class ClaudeAgentRuntime:
    """AgentRuntime backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else Config.ANTHROPIC_API_KEY
        self.model = model or Config.CLAUDE_MODEL
        self.http = session or requests
        self.timeout = timeout or Config.API_TIMEOUT

    def check_api_key(self) -> None:
        """
        Raises:
            AgentAuthenticationError: If the key is missing or malformed
        """
        if not self.api_key:
            raise AgentAuthenticationError("ANTHROPIC_API_KEY environment variable is not set")
        if not self.api_key.startswith("sk-"):
            raise AgentAuthenticationError('Invalid ANTHROPIC_API_KEY format. API key should start with "sk-"')

    def run(self, agent: AgentConfig, prompt: str) -> str:
        """
        Run one agent turn.

        Args:
            agent: Agent to run
            prompt: User prompt

        Returns:
            The agent's text output

        Raises:
            AgentAuthenticationError: Missing/malformed key or HTTP 401/403
            AgentRuntimeError: Any other failure (timeout, HTTP error, empty output)
        """
        self.check_api_key()

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

        payload = {
            "model": agent.model or self.model,
            "max_tokens": agent.max_tokens or Config.CLAUDE_MAX_TOKENS,
            "temperature": agent.temperature if agent.temperature is not None else Config.CLAUDE_TEMPERATURE,
            "system": agent.instructions,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
        }

        try:
            logger.debug(f"Running agent {agent.name} with model {payload['model']}")

            response = self.http.post(
                ANTHROPIC_MESSAGES_URL,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )

            if response.status_code in (401, 403):
                raise AgentAuthenticationError(AUTH_FAILED_MESSAGE, status_code=response.status_code)

            response.raise_for_status()
            data = response.json()

        except Timeout:
            raise AgentRuntimeError(f"Claude API request timed out after {self.timeout}s")

        except ConnectionError as e:
            raise AgentRuntimeError(f"Connection error calling Claude API: {e}")

        except RequestException as e:
            status = e.response.status_code if e.response is not None else None
            detail = e.response.text[:500] if e.response is not None else ""
            logger.error(f"Claude API request failed: {e} {detail}")
            raise AgentRuntimeError(f"Claude API request failed: {e}", status_code=status)

        except ValueError as e:
            raise AgentRuntimeError(f"Invalid JSON from Claude API: {e}")

        text = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )

        if not text.strip():
            logger.warning("Unexpected Claude API response structure")
            logger.debug(f"Response data: {json.dumps(data, indent=2)[:500]}")
            raise AgentRuntimeError(f"Agent {agent.name} returned no output")

        logger.debug(f"Agent {agent.name} returned {len(text)} characters")
        return text
