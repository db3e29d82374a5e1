"""LLM providers used by the assistant for free-text completions."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from enum import Enum

import requests

try:
    import openai
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False

try:
    import anthropic
    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False

from .config import LLMConfig


SHARED_SYSTEM_PROMPT = """You are PM2 Pilot, an assistant for PM2 process management.

You are given REAL, CURRENT data from PM2 in the context below. Use it to answer
the user's question directly instead of giving generic advice.

RESPONSE STRATEGY:
1. Analyze the data provided in context
2. Answer with the actual process names, states and metrics shown
3. Never suggest raw pm2 commands; suggest PM2 Pilot phrases instead:
   - "show logs for <process>" instead of "pm2 logs <process>"
   - "restart <process>" instead of "pm2 restart <process>"
   - "show my processes" instead of "pm2 status"
4. Only if nothing else fits, mention slash commands: /status, /restart,
   /stop, /start, /logs, /metrics, /errors

Be concise and actionable."""


class LLMProvider(Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class LLMProviderError(Exception):
    """Raised when a provider call fails or returns nothing usable."""
    pass


@dataclass
class ConversationMessage:
    """A single message of a chat transcript."""
    role: str  # 'system', 'user' or 'assistant'
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


class LLMClient(ABC):
    """Abstract base class for LLM clients.

    Subclasses implement a blocking ``_complete`` call against their SDK; the
    public coroutines run it in a worker thread and bound it with the
    configured request timeout.
    """

    default_model: str = ""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.model = config.default_model or self.default_model
        self.logger = logging.getLogger(__name__)

    @property
    @abstractmethod
    def provider(self) -> LLMProvider:
        """Provider identifier."""
        pass

    @abstractmethod
    def _complete(self, messages: List[Dict[str, str]], system: Optional[str] = None) -> str:
        """Run one blocking completion and return the response text."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the client has the credentials it needs."""
        pass

    async def query(self, prompt: str, context: Optional[str] = None) -> str:
        """Send a single prompt, optionally with a context block."""
        return await self.query_with_history(prompt, [], context)

    async def query_with_history(self, prompt: str, history: List[ConversationMessage],
                                 context: Optional[str] = None) -> str:
        """Send a prompt preceded by a user/assistant transcript."""
        system = SHARED_SYSTEM_PROMPT
        if context:
            system = f"{SHARED_SYSTEM_PROMPT}\n\nCONTEXT:\n{context}"

        messages = [
            {"role": message.role, "content": message.content}
            for message in history
            if message.role in ("user", "assistant") and message.content
        ]
        messages.append({"role": "user", "content": prompt})

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._complete, messages, system),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError:
            raise LLMProviderError(
                f"{self.provider.value} did not respond within {self.config.request_timeout}s"
            )

    def get_config_info(self) -> str:
        """Describe the active provider for display."""
        status = "configured" if self.is_configured() else "not configured"
        return (f"Provider: {self.provider.value} ({status})\n"
                f"Model: {self.model}\n"
                f"Temperature: {self.config.temperature}\n"
                f"Max tokens: {self.config.max_tokens}")


class OpenAIClient(LLMClient):
    """OpenAI-based LLM client."""

    default_model = "gpt-4o-mini"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        if not OPENAI_AVAILABLE:
            raise ImportError("OpenAI library not installed. Run: pip install openai")

        if not config.openai_api_key:
            raise ValueError("OpenAI API key not provided")

        self.client = openai.OpenAI(api_key=config.openai_api_key)

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.OPENAI

    def is_configured(self) -> bool:
        return bool(self.config.openai_api_key)

    def _complete(self, messages: List[Dict[str, str]], system: Optional[str] = None) -> str:
        payload = list(messages)
        if system:
            payload.insert(0, {"role": "system", "content": system})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except Exception as e:
            raise LLMProviderError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content
        if not isinstance(content, str) or not content:
            raise LLMProviderError("OpenAI response content is not a non-empty string.")
        return content


class AnthropicClient(LLMClient):
    """Anthropic Claude-based LLM client."""

    default_model = "claude-3-5-haiku-latest"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        if not ANTHROPIC_AVAILABLE:
            raise ImportError("Anthropic library not installed. Run: pip install anthropic")

        if not config.anthropic_api_key:
            raise ValueError("Anthropic API key not provided")

        self.client = anthropic.Anthropic(api_key=config.anthropic_api_key)

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.ANTHROPIC

    def is_configured(self) -> bool:
        return bool(self.config.anthropic_api_key)

    def _complete(self, messages: List[Dict[str, str]], system: Optional[str] = None) -> str:
        kwargs = {
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system

        try:
            response = self.client.messages.create(**kwargs)
        except Exception as e:
            raise LLMProviderError(f"Anthropic request failed: {e}") from e

        # Extract text from Anthropic response with proper error handling
        if not response.content:
            raise LLMProviderError("Anthropic response has no content")

        content_block = response.content[0]
        if not hasattr(content_block, 'text'):
            raise LLMProviderError("Anthropic response content block has no text attribute")

        content_text = content_block.text
        if not content_text:
            raise LLMProviderError("Anthropic response content text is empty")

        return content_text


class GeminiClient(LLMClient):
    """Google Gemini client over the public REST API."""

    default_model = "gemini-1.5-flash"
    API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        if not config.gemini_api_key:
            raise ValueError("Gemini API key not provided")

        self.session = requests.Session()

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.GEMINI

    def is_configured(self) -> bool:
        return bool(self.config.gemini_api_key)

    def _complete(self, messages: List[Dict[str, str]], system: Optional[str] = None) -> str:
        # Gemini calls the assistant role "model"
        contents = [
            {
                "role": "model" if message["role"] == "assistant" else "user",
                "parts": [{"text": message["content"]}],
            }
            for message in messages
        ]
        body = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        try:
            response = self.session.post(
                self.API_URL.format(model=self.model),
                params={"key": self.config.gemini_api_key},
                json=body,
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise LLMProviderError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise LLMProviderError(f"Gemini returned invalid JSON: {e}") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise LLMProviderError("Gemini response has no candidate text")

        if not isinstance(text, str) or not text:
            raise LLMProviderError("Gemini response text is empty")
        return text


def create_llm_client(config: LLMConfig, provider: Optional[LLMProvider] = None) -> LLMClient:
    """Factory function to create appropriate LLM client."""
    if provider is None and config.provider:
        provider = LLMProvider(config.provider)

    if provider is None:
        # Auto-detect based on available API keys
        if config.openai_api_key:
            provider = LLMProvider.OPENAI
        elif config.anthropic_api_key:
            provider = LLMProvider.ANTHROPIC
        elif config.gemini_api_key:
            provider = LLMProvider.GEMINI
        else:
            raise ValueError("No LLM API key provided")

    if provider == LLMProvider.OPENAI:
        return OpenAIClient(config)
    elif provider == LLMProvider.ANTHROPIC:
        return AnthropicClient(config)
    elif provider == LLMProvider.GEMINI:
        return GeminiClient(config)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")
