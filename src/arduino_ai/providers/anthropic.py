"""
Anthropic Claude LLM Provider.

Implements the ILLMProvider interface for Anthropic's Messages API.
The system prompt is a top-level field, tool calls are `tool_use`
content blocks and tool results go back as `tool_result` blocks inside
a user turn.
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

# Lazy import to avoid requiring anthropic if not used
try:
    import anthropic
    from anthropic import AsyncAnthropic

    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False
    anthropic = None
    AsyncAnthropic = None


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider implementation.

    Usage:
        config = LLMProviderConfig(
            api_key="sk-ant-...",
            model="claude-3-5-sonnet-20241022",
        )
        provider = AnthropicProvider(config)

        response = await provider.chat(messages, tools, system_prompt="...")
    """

    PROVIDER_NAME = "claude"
    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    AVAILABLE_MODELS = (
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    )
    API_KEY_HINT = "Anthropic keys start with 'sk-ant-'."

    def __init__(self, config: LLMProviderConfig, client: Any = None):
        """Initialize the Anthropic provider.

        Args:
            config: Provider configuration
            client: Pre-built AsyncAnthropic client (tests inject a mock here)

        Raises:
            ImportError: If anthropic package is not installed
            InvalidAPIKeyError: If the key is not an Anthropic key
        """
        if client is None and not ANTHROPIC_AVAILABLE:
            raise ImportError(
                "anthropic package is required for AnthropicProvider. "
                "Install with: pip install anthropic"
            )

        super().__init__(config)

        self.client = client or AsyncAnthropic(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )

    @classmethod
    def validate_api_key(cls, api_key: Optional[str]) -> bool:
        return super().validate_api_key(api_key) and api_key.startswith("sk-ant-")

    def format_messages(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> tuple[Optional[str], list[dict[str, Any]]]:
        """Convert messages to Anthropic format.

        Anthropic uses a separate system parameter and requires roles to
        alternate, so consecutive turns with the same role are merged
        into one turn with several content blocks.

        Returns:
            Tuple of (system_prompt, messages_list)
        """
        api_messages: list[dict[str, Any]] = []
        system = system_prompt

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                if not msg.content:
                    continue
                system = f"{msg.content}\n\n{system}" if system else msg.content
            elif msg.role == MessageRole.TOOL:
                self._append_blocks(api_messages, "user", [{
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content or "",
                }])
            elif msg.role == MessageRole.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls or []:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments,
                    })
                self._append_blocks(api_messages, "assistant", blocks)
            elif msg.content:
                self._append_blocks(
                    api_messages, "user", [{"type": "text", "text": msg.content}]
                )

        return system, api_messages

    @staticmethod
    def _append_blocks(
        api_messages: list[dict[str, Any]], role: str, blocks: list[dict[str, Any]]
    ) -> None:
        if not blocks:
            return
        if api_messages and api_messages[-1]["role"] == role:
            api_messages[-1]["content"].extend(blocks)
        else:
            api_messages.append({"role": role, "content": list(blocks)})

    def format_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tools to Anthropic format."""
        return [tool.to_anthropic_format() for tool in tools]

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        """Extract tool_use blocks from a Messages API response."""
        tool_calls = []
        for block in raw_response.content or []:
            if getattr(block, "type", None) == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id or self._synthetic_tool_call_id(),
                        name=block.name,
                        arguments=self._parse_arguments(block.input),
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
        """Generate a response using Claude.

        Raises:
            ProviderError: On any API failure
        """
        system, api_messages = self.format_messages(messages, system_prompt)

        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": api_messages,
            "temperature": temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

        if system:
            kwargs["system"] = system

        if tools:
            kwargs["tools"] = self.format_tools(tools)

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.AuthenticationError as e:
            logger.error(f"Anthropic rejected the API key: {e}")
            raise ProviderError(
                f"Invalid Claude API key: {e}",
                provider=self.name,
                error_type=ErrorType.AUTH,
                cause=e,
            )
        except anthropic.RateLimitError as e:
            logger.warning(f"Rate limited by Anthropic: {e}")
            raise ProviderError(
                f"Rate limited: {e}",
                provider=self.name,
                error_type=ErrorType.RATE_LIMIT,
                cause=e,
            )
        except anthropic.APITimeoutError as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise ProviderError(
                f"Request timed out: {e}",
                provider=self.name,
                error_type=ErrorType.TIMEOUT,
                cause=e,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise ProviderError(
                f"Claude API error: {e}",
                provider=self.name,
                error_type=ErrorType.RECOVERABLE,
                cause=e,
            )
        except Exception as e:
            logger.exception(f"Unexpected error in Anthropic chat: {e}")
            raise ProviderError(
                str(e), provider=self.name, error_type=ErrorType.FATAL, cause=e
            )

        text_parts = [
            block.text
            for block in response.content or []
            if getattr(block, "type", None) == "text"
        ]

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.input_tokens or 0,
                output_tokens=response.usage.output_tokens or 0,
            )

        return ChatResponse(
            content="".join(text_parts),
            tool_calls=self.parse_tool_calls(response),
            usage=usage,
            model=response.model or self.config.model,
            provider=self.name,
        )

    async def close(self) -> None:
        """Close the client."""
        await self.client.close()
