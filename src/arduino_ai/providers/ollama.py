"""
Ollama LLM Provider.

Implements the ILLMProvider interface for Ollama's local `/api/chat`
endpoint. No API key is required; tool call arguments arrive as JSON
objects and carry no id.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..domain.entities import (
    ChatResponse,
    ErrorType,
    Message,
    MessageRole,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from ..domain.exceptions import ProviderError
from .base import BaseLLMProvider, LLMProviderConfig

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring httpx if not used
try:
    import httpx

    OLLAMA_AVAILABLE = True
except ImportError:
    OLLAMA_AVAILABLE = False
    httpx = None


class OllamaProvider(BaseLLMProvider):
    """Ollama local LLM provider implementation.

    Supports locally-hosted models (qwen, llama, mistral, etc.). Tool
    calling depends on the model; models without tool support simply
    answer with text.

    Usage:
        config = LLMProviderConfig(
            model="qwen3:4b",
            base_url="http://localhost:11434",
        )
        provider = OllamaProvider(config)

        response = await provider.chat(messages, tools)
    """

    PROVIDER_NAME = "ollama"
    DEFAULT_MODEL = "qwen3:4b"
    DEFAULT_BASE_URL = "http://localhost:11434"
    AVAILABLE_MODELS = (
        "qwen3:4b",
        "qwen2.5-coder:7b",
        "llama3.1:8b",
        "mistral:7b",
    )
    REQUIRES_API_KEY = False

    def __init__(self, config: LLMProviderConfig, client: Any = None):
        """Initialize the Ollama provider.

        Args:
            config: Provider configuration
            client: Pre-built httpx.AsyncClient (tests pass a MockTransport client)

        Raises:
            ImportError: If httpx package is not installed
        """
        if client is None and not OLLAMA_AVAILABLE:
            raise ImportError(
                "httpx package is required for OllamaProvider. "
                "Install with: pip install httpx"
            )

        super().__init__(config)

        self.base_url = self.config.base_url or self.DEFAULT_BASE_URL
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout,
        )

    def available_models(self) -> list[str]:
        models = list(self.AVAILABLE_MODELS)
        if self.config.model not in models:
            models.insert(0, self.config.model)
        return models

    def format_messages(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Convert messages to Ollama format.

        Ollama uses an OpenAI-like format, with tool results correlated
        by `tool_name` instead of an id.
        """
        api_messages = []

        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if msg.role == MessageRole.TOOL:
                api_messages.append({
                    "role": "tool",
                    "content": msg.content or "",
                    "tool_name": msg.name,
                })
            elif msg.role == MessageRole.ASSISTANT and msg.tool_calls:
                api_messages.append({
                    "role": "assistant",
                    "content": msg.content or "",
                    "tool_calls": [
                        {"function": {"name": tc.name, "arguments": tc.arguments}}
                        for tc in msg.tool_calls
                    ],
                })
            else:
                api_messages.append({
                    "role": msg.role.value,
                    "content": msg.content or "",
                })

        return api_messages

    def format_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tools to Ollama format.

        Ollama uses OpenAI-compatible tool format.
        """
        return [tool.to_openai_format() for tool in tools]

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        """Extract tool calls from an /api/chat response body."""
        message = raw_response.get("message") or {}
        tool_calls = []
        for tool_call in message.get("tool_calls") or []:
            function = tool_call.get("function") or {}
            tool_name = function.get("name")
            if not tool_name:
                continue
            tool_calls.append(
                ToolCall(
                    id=tool_call.get("id") or self._synthetic_tool_call_id(),
                    name=tool_name,
                    arguments=self._parse_arguments(function.get("arguments")),
                )
            )
        return tool_calls

    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        """Generate a response using Ollama.

        Raises:
            ProviderError: On HTTP or connection failures
        """
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": self.format_messages(messages, system_prompt),
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens or self.config.max_tokens,
            },
        }

        if tools:
            payload["tools"] = self.format_tools(tools)

        try:
            response = await self.client.post("/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            error_msg = f"Ollama API error: {e.response.status_code} - {e.response.text}"
            logger.error(error_msg)
            error_type = ErrorType.FATAL if e.response.status_code == 404 else ErrorType.RECOVERABLE
            raise ProviderError(error_msg, provider=self.name, error_type=error_type, cause=e)

        except httpx.TimeoutException as e:
            error_msg = f"Ollama request timeout: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg, provider=self.name, error_type=ErrorType.TIMEOUT, cause=e
            )

        except httpx.RequestError as e:
            error_msg = f"Ollama connection error: {str(e)}. Is Ollama running at {self.base_url}?"
            logger.error(error_msg)
            raise ProviderError(
                error_msg, provider=self.name, error_type=ErrorType.RECOVERABLE, cause=e
            )

        except ValueError as e:
            error_msg = f"Failed to parse Ollama response: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg, provider=self.name, error_type=ErrorType.RECOVERABLE, cause=e
            )

        if data.get("error"):
            raise ProviderError(
                f"Ollama error: {data['error']}",
                provider=self.name,
                error_type=ErrorType.RECOVERABLE,
            )

        message = data.get("message") or {}

        return ChatResponse(
            content=message.get("content") or "",
            tool_calls=self.parse_tool_calls(data),
            usage=TokenUsage(
                input_tokens=data.get("prompt_eval_count", 0),
                output_tokens=data.get("eval_count", 0),
            ),
            model=data.get("model") or self.config.model,
            provider=self.name,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
