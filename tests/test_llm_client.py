from unittest.mock import MagicMock

import pytest
from requests.exceptions import HTTPError, Timeout

from alithos.exceptions import AgentAuthenticationError, AgentRuntimeError
from alithos.llm_client import ANTHROPIC_MESSAGES_URL, AgentConfig, ClaudeAgentRuntime

AGENT = AgentConfig(name="Analyst", instructions="You are an analyst.")


def _response(status=200, data=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = data if data is not None else {}
    if status >= 400:
        error = HTTPError(f"{status} error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


@pytest.fixture
def session():
    return MagicMock()


class TestClaudeAgentRuntime:

    def test_returns_text(self, session):
        session.post.return_value = _response(data={"content": [
            {"type": "text", "text": "CONFIDENCE: 0.7\n"},
            {"type": "text", "text": "REASONING: ok"},
        ]})
        runtime = ClaudeAgentRuntime(api_key="sk-ant-test", model="claude-test", session=session)

        text = runtime.run(AGENT, "Analyze this")

        assert text == "CONFIDENCE: 0.7\nREASONING: ok"
        args, kwargs = session.post.call_args
        assert args[0] == ANTHROPIC_MESSAGES_URL
        assert kwargs["json"]["system"] == "You are an analyst."
        assert kwargs["json"]["model"] == "claude-test"
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "Analyze this"}]
        assert kwargs["headers"]["x-api-key"] == "sk-ant-test"

    def test_agent_model_override(self, session):
        session.post.return_value = _response(data={"content": [{"type": "text", "text": "hi"}]})
        runtime = ClaudeAgentRuntime(api_key="sk-ant-test", model="default", session=session)

        runtime.run(AgentConfig(name="A", instructions="x", model="special", temperature=0.0), "p")

        payload = session.post.call_args.kwargs["json"]
        assert payload["model"] == "special"
        assert payload["temperature"] == 0.0

    @pytest.mark.parametrize("key", ["", "bad-key"])
    def test_bad_key_rejected_before_request(self, session, key):
        runtime = ClaudeAgentRuntime(api_key=key, session=session)

        with pytest.raises(AgentAuthenticationError):
            runtime.run(AGENT, "p")
        session.post.assert_not_called()

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure(self, session, status):
        session.post.return_value = _response(status=status)
        runtime = ClaudeAgentRuntime(api_key="sk-ant-test", session=session)

        with pytest.raises(AgentAuthenticationError) as exc_info:
            runtime.run(AGENT, "p")
        assert exc_info.value.status_code == status

    def test_server_error(self, session):
        session.post.return_value = _response(status=529)
        runtime = ClaudeAgentRuntime(api_key="sk-ant-test", session=session)

        with pytest.raises(AgentRuntimeError) as exc_info:
            runtime.run(AGENT, "p")
        assert not isinstance(exc_info.value, AgentAuthenticationError)
        assert exc_info.value.status_code == 529

    def test_timeout(self, session):
        session.post.side_effect = Timeout()
        runtime = ClaudeAgentRuntime(api_key="sk-ant-test", session=session, timeout=5)

        with pytest.raises(AgentRuntimeError, match="timed out after 5s"):
            runtime.run(AGENT, "p")

    def test_empty_output(self, session):
        session.post.return_value = _response(data={"content": []})
        runtime = ClaudeAgentRuntime(api_key="sk-ant-test", session=session)

        with pytest.raises(AgentRuntimeError, match="returned no output"):
            runtime.run(AGENT, "p")
