"""Unit tests for LLM clients."""

import asyncio

import pytest
import requests
from unittest.mock import Mock, patch, AsyncMock

from pm2_pilot.llm_client import (
    SHARED_SYSTEM_PROMPT,
    AnthropicClient,
    ConversationMessage,
    GeminiClient,
    LLMProvider,
    LLMProviderError,
    OpenAIClient,
    create_llm_client,
)
from pm2_pilot.config import LLMConfig


@pytest.fixture
def openai_config():
    return LLMConfig(openai_api_key="test-openai-key")


@pytest.fixture
def anthropic_config():
    return LLMConfig(anthropic_api_key="test-anthropic-key")


@pytest.fixture
def gemini_config():
    return LLMConfig(gemini_api_key="test-gemini-key")


@pytest.fixture
def mock_openai():
    with patch("pm2_pilot.llm_client.OPENAI_AVAILABLE", True), \
            patch("pm2_pilot.llm_client.openai", create=True) as mock_module:
        yield mock_module


@pytest.fixture
def mock_anthropic():
    with patch("pm2_pilot.llm_client.ANTHROPIC_AVAILABLE", True), \
            patch("pm2_pilot.llm_client.anthropic", create=True) as mock_module:
        yield mock_module


def openai_response(content):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    return response


class TestCreateLLMClient:
    """Test the provider factory."""

    def test_no_keys(self):
        with pytest.raises(ValueError, match="No LLM API key provided"):
            create_llm_client(LLMConfig())

    def test_auto_detect_openai_first(self, mock_openai):
        config = LLMConfig(openai_api_key="a", anthropic_api_key="b", gemini_api_key="c")
        client = create_llm_client(config)
        assert isinstance(client, OpenAIClient)

    def test_auto_detect_anthropic(self, mock_anthropic, anthropic_config):
        assert isinstance(create_llm_client(anthropic_config), AnthropicClient)

    def test_auto_detect_gemini(self, gemini_config):
        assert isinstance(create_llm_client(gemini_config), GeminiClient)

    def test_configured_provider_wins(self, mock_anthropic):
        config = LLMConfig(openai_api_key="a", anthropic_api_key="b", provider="anthropic")
        assert isinstance(create_llm_client(config), AnthropicClient)

    def test_explicit_provider_without_key(self, mock_openai):
        with pytest.raises(ValueError, match="OpenAI API key not provided"):
            create_llm_client(LLMConfig(gemini_api_key="c"), LLMProvider.OPENAI)

    def test_missing_library(self, openai_config):
        with patch("pm2_pilot.llm_client.OPENAI_AVAILABLE", False):
            with pytest.raises(ImportError, match="pip install openai"):
                OpenAIClient(openai_config)


class TestOpenAIClient:
    """Test OpenAIClient."""

    def test_default_model(self, mock_openai, openai_config):
        client = OpenAIClient(openai_config)

        assert client.model == "gpt-4o-mini"
        assert client.provider == LLMProvider.OPENAI
        mock_openai.OpenAI.assert_called_once_with(api_key="test-openai-key")

    def test_model_override(self, mock_openai):
        client = OpenAIClient(LLMConfig(openai_api_key="k", default_model="gpt-4o"))
        assert client.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_query_with_context(self, mock_openai, openai_config):
        create = mock_openai.OpenAI.return_value.chat.completions.create
        create.return_value = openai_response("api-server is using 120MB")
        client = OpenAIClient(openai_config)

        answer = await client.query("how much memory?", context="api-server: 120MB")

        assert answer == "api-server is using 120MB"
        messages = create.call_args.kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith(SHARED_SYSTEM_PROMPT)
        assert messages[0]["content"].endswith("CONTEXT:\napi-server: 120MB")
        assert messages[-1] == {"role": "user", "content": "how much memory?"}
        assert create.call_args.kwargs["temperature"] == 0.1
        assert create.call_args.kwargs["max_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_query_with_history(self, mock_openai, openai_config):
        create = mock_openai.OpenAI.return_value.chat.completions.create
        create.return_value = openai_response("It restarted 2 times")
        client = OpenAIClient(openai_config)
        history = [
            ConversationMessage(role="user", content="why is api slow"),
            ConversationMessage(role="assistant", content="High CPU"),
            ConversationMessage(role="system", content="ignored"),
            ConversationMessage(role="user", content=""),
        ]

        await client.query_with_history("and restarts?", history)

        messages = create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[1]["content"] == "why is api slow"
        assert messages[3]["content"] == "and restarts?"

    @pytest.mark.asyncio
    async def test_empty_content(self, mock_openai, openai_config):
        create = mock_openai.OpenAI.return_value.chat.completions.create
        create.return_value = openai_response(None)
        client = OpenAIClient(openai_config)

        with pytest.raises(LLMProviderError, match="not a non-empty string"):
            await client.query("hello")

    @pytest.mark.asyncio
    async def test_sdk_failure(self, mock_openai, openai_config):
        create = mock_openai.OpenAI.return_value.chat.completions.create
        create.side_effect = RuntimeError("rate limited")
        client = OpenAIClient(openai_config)

        with pytest.raises(LLMProviderError, match="OpenAI request failed: rate limited"):
            await client.query("hello")

    @pytest.mark.asyncio
    async def test_timeout(self, mock_openai, openai_config):
        client = OpenAIClient(openai_config)

        with patch("pm2_pilot.llm_client.asyncio.wait_for",
                   AsyncMock(side_effect=asyncio.TimeoutError())), \
                patch("pm2_pilot.llm_client.asyncio.to_thread", Mock(return_value=None)):
            with pytest.raises(LLMProviderError, match="did not respond within 30s"):
                await client.query("hello")

    def test_get_config_info(self, mock_openai, openai_config):
        info = OpenAIClient(openai_config).get_config_info()

        assert info.startswith("Provider: openai (configured)")
        assert "Model: gpt-4o-mini" in info


class TestAnthropicClient:
    """Test AnthropicClient."""

    @pytest.mark.asyncio
    async def test_query(self, mock_anthropic, anthropic_config):
        create = mock_anthropic.Anthropic.return_value.messages.create
        block = Mock()
        block.text = "Everything is online"
        create.return_value = Mock(content=[block])
        client = AnthropicClient(anthropic_config)

        answer = await client.query("status?")

        assert answer == "Everything is online"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-3-5-haiku-latest"
        assert kwargs["system"] == SHARED_SYSTEM_PROMPT
        assert kwargs["messages"] == [{"role": "user", "content": "status?"}]

    @pytest.mark.asyncio
    async def test_no_content(self, mock_anthropic, anthropic_config):
        create = mock_anthropic.Anthropic.return_value.messages.create
        create.return_value = Mock(content=[])
        client = AnthropicClient(anthropic_config)

        with pytest.raises(LLMProviderError, match="no content"):
            await client.query("status?")


class TestGeminiClient:
    """Test GeminiClient against a mocked HTTP session."""

    @pytest.mark.asyncio
    async def test_query(self, gemini_config):
        client = GeminiClient(gemini_config)
        response = Mock()
        response.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": "Restart worker"}]}}]
        }
        client.session = Mock()
        client.session.post.return_value = response

        history = [ConversationMessage(role="assistant", content="Hi")]
        answer = await client.query_with_history("what now?", history)

        assert answer == "Restart worker"
        args, kwargs = client.session.post.call_args
        assert args[0].endswith("/models/gemini-1.5-flash:generateContent")
        assert kwargs["params"] == {"key": "test-gemini-key"}
        assert [c["role"] for c in kwargs["json"]["contents"]] == ["model", "user"]
        assert kwargs["json"]["systemInstruction"]["parts"][0]["text"] == SHARED_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_http_error(self, gemini_config):
        client = GeminiClient(gemini_config)
        client.session = Mock()
        client.session.post.side_effect = requests.exceptions.ConnectionError("offline")

        with pytest.raises(LLMProviderError, match="Gemini request failed"):
            await client.query("hello")

    @pytest.mark.asyncio
    async def test_missing_candidates(self, gemini_config):
        client = GeminiClient(gemini_config)
        client.session = Mock()
        client.session.post.return_value.json.return_value = {"candidates": []}

        with pytest.raises(LLMProviderError, match="no candidate text"):
            await client.query("hello")
