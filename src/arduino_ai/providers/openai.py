"""
OpenAI GPT LLM Provider.

Implements the ILLMProvider interface for OpenAI's chat completions API.
System prompt travels as the first message, tool results as `tool` role
messages and tool call arguments arrive as JSON strings.
"""

from __future__ import annotations

import json
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

# Lazy import to avoid requiring openai if not used
try:
    import openai
    from openai import AsyncOpenAI

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False
    openai = None
    AsyncOpenAI = None


class OpenAIProvider(BaseLLMProvider):
    """OpenAI GPT provider implementation.

    Usage:
        config = LLMProviderConfig(api_key="sk-...", model="gpt-4o-mini")
        provider = OpenAIProvider(config)

        response = await provider.chat(messages, tools)
        for call in response.tool_calls:
            print(call.name, call.arguments)
    """

    PROVIDER_NAME = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"
    AVAILABLE_MODELS = (
        "gpt-4o-mini",
        "gpt-4o",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    )
    API_KEY_HINT = "OpenAI keys start with 'sk-'."

    def __init__(self, config: LLMProviderConfig, client: Any = None):
        """Initialize the OpenAI provider.

        Args:
            config: Provider configuration
            client: Pre-built AsyncOpenAI client (tests inject a mock here)

        Raises:
            ImportError: If openai package is not installed
            InvalidAPIKeyError: If the key is not an OpenAI key
        """
        if client is None and not OPENAI_AVAILABLE:
            raise ImportError(
                "openai package is required for OpenAIProvider. "
                "Install with: pip install openai"
            )

        super().__init__(config)

        self.client = client or AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )

    @classmethod
    def validate_api_key(cls, api_key: Optional[str]) -> bool:
        return super().validate_api_key(api_key) and api_key.startswith("sk-")

    def format_messages(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Convert messages to OpenAI format.

        OpenAI includes system messages in the messages array.
        """
        api_messages = []

        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if msg.role == MessageRole.TOOL:
                api_messages.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content or "",
                })
            elif msg.role == MessageRole.ASSISTANT and msg.tool_calls:
                api_messages.append({
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
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
        """Convert tools to OpenAI format."""
        return [tool.to_openai_format() for tool in tools]

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        """Extract tool calls from a ChatCompletion."""
        if not raw_response.choices:
            return []

        message = raw_response.choices[0].message
        tool_calls = []
        for tc in message.tool_calls or []:
            tool_calls.append(
                ToolCall(
                    id=tc.id or self._synthetic_tool_call_id(),
                    name=tc.function.name,
                    arguments=self._parse_arguments(tc.function.arguments),
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
        """Generate a response using GPT.

        Args:
            messages: Conversation history
            tools: Available tools
            system_prompt: System prompt
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Normalized ChatResponse

        Raises:
            ProviderError: On any API failure
        """
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": self.format_messages(messages, system_prompt),
            "temperature": temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

        if tools:
            kwargs["tools"] = self.format_tools(tools)
            kwargs["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.AuthenticationError as e:
            logger.error(f"OpenAI rejected the API key: {e}")
            raise ProviderError(
                f"Invalid OpenAI API key: {e}",
                provider=self.name,
                error_type=ErrorType.AUTH,
                cause=e,
            )
        except openai.RateLimitError as e:
            logger.warning(f"Rate limited by OpenAI: {e}")
            raise ProviderError(
                f"Rate limited: {e}",
                provider=self.name,
                error_type=ErrorType.RATE_LIMIT,
                cause=e,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise ProviderError(
                f"Request timed out: {e}",
                provider=self.name,
                error_type=ErrorType.TIMEOUT,
                cause=e,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise ProviderError(
                f"OpenAI API error: {e}",
                provider=self.name,
                error_type=ErrorType.RECOVERABLE,
                cause=e,
            )
        except Exception as e:
            logger.exception(f"Unexpected error in OpenAI chat: {e}")
            raise ProviderError(
                str(e), provider=self.name, error_type=ErrorType.FATAL, cause=e
            )

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        return ChatResponse(
            content=content,
            tool_calls=self.parse_tool_calls(response),
            usage=usage,
            model=response.model or self.config.model,
            provider=self.name,
        )

    async def close(self) -> None:
        """Close the client."""
        await self.client.close()
