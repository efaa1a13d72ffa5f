"""
Unit tests for the Anthropic Claude provider.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from arduino_ai.domain.entities import ErrorType, Message, MessageRole, ToolCall, ToolDefinition
from arduino_ai.domain.exceptions import InvalidAPIKeyError, ProviderError
from arduino_ai.providers.anthropic import ANTHROPIC_AVAILABLE, AnthropicProvider
from arduino_ai.providers.base import LLMProviderConfig

pytestmark = pytest.mark.skipif(
    not ANTHROPIC_AVAILABLE,
    reason="anthropic package not installed"
)

API_KEY = "sk-ant-test-1234567890"


def text_block(text):
    return SimpleNamespace(type="text", text=text)


def tool_use_block(block_id, name, tool_input):
    return SimpleNamespace(type="tool_use", id=block_id, name=name, input=tool_input)


def message_response(*blocks, model="claude-3-5-sonnet-20241022"):
    return SimpleNamespace(
        content=list(blocks),
        usage=SimpleNamespace(input_tokens=20, output_tokens=9),
        model=model,
    )


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=message_response(text_block("Hi there")))
    client.close = AsyncMock()
    return client


@pytest.fixture
def provider(mock_client):
    return AnthropicProvider(LLMProviderConfig(api_key=API_KEY), client=mock_client)


class TestAnthropicProviderInit:
    """Tests for provider construction."""

    def test_defaults(self, provider):
        assert provider.name == "claude"
        assert provider.model_name == "claude-3-5-sonnet-20241022"

    def test_rejects_openai_key(self, mock_client):
        with pytest.raises(InvalidAPIKeyError) as exc_info:
            AnthropicProvider(LLMProviderConfig(api_key="sk-1234567890abcdef"), client=mock_client)
        assert exc_info.value.error_type == ErrorType.AUTH


class TestAnthropicFormatting:
    """Tests for message translation."""

    def test_system_prompt_is_separate(self, provider):
        system, api_messages = provider.format_messages([Message.user("Hi")], system_prompt="sys")

        assert system == "sys"
        assert api_messages == [{"role": "user", "content": [{"type": "text", "text": "Hi"}]}]

    def test_tool_results_merge_into_one_user_turn(self, provider):
        first = ToolCall(name="get_code", arguments={}, id="toolu_1")
        second = ToolCall(name="list_ports", arguments={}, id="toolu_2")
        messages = [
            Message.user("Look around"),
            Message.assistant("Checking", [first, second]),
            Message.tool_result(first, '{"code": ""}'),
            Message.tool_result(second, "[]"),
        ]

        _, api_messages = provider.format_messages(messages)

        assert [m["role"] for m in api_messages] == ["user", "assistant", "user"]
        assistant_blocks = api_messages[1]["content"]
        assert assistant_blocks[0] == {"type": "text", "text": "Checking"}
        assert [b["id"] for b in assistant_blocks[1:]] == ["toolu_1", "toolu_2"]
        results = api_messages[2]["content"]
        assert [b["tool_use_id"] for b in results] == ["toolu_1", "toolu_2"]
        assert all(b["type"] == "tool_result" for b in results)

    def test_system_message_joins_system_prompt(self, provider):
        system, api_messages = provider.format_messages(
            [Message(role=MessageRole.SYSTEM, content="Extra"), Message.user("Hi")],
            system_prompt="Base",
        )

        assert system == "Extra\n\nBase"
        assert len(api_messages) == 1


class TestAnthropicChat:
    """Tests for chat requests and response parsing."""

    @pytest.mark.asyncio
    async def test_text_response(self, provider, mock_client):
        response = await provider.chat([Message.user("Hi")], system_prompt="sys")

        assert response.content == "Hi there"
        assert response.usage.input_tokens == 20
        assert response.provider == "claude"
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == 2000

    @pytest.mark.asyncio
    async def test_tool_use_blocks(self, provider, mock_client):
        mock_client.messages.create.return_value = message_response(
            text_block("Let me compile."),
            tool_use_block("toolu_1", "compile_sketch", {"boardFQBN": "arduino:avr:uno"}),
        )
        tool = ToolDefinition(
            name="compile_sketch",
            description="Compile",
            parameters={"type": "object", "properties": {}},
        )

        response = await provider.chat([Message.user("Compile")], tools=[tool])

        assert response.content == "Let me compile."
        assert response.tool_calls == [
            ToolCall(name="compile_sketch", arguments={"boardFQBN": "arduino:avr:uno"}, id="toolu_1")
        ]
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["tools"][0]["input_schema"] == {"type": "object", "properties": {}}


class TestAnthropicErrors:
    """Tests for SDK error mapping."""

    @staticmethod
    def _response(status):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        return httpx.Response(status, request=request)

    @pytest.mark.asyncio
    async def test_authentication_error(self, provider, mock_client):
        import anthropic

        mock_client.messages.create.side_effect = anthropic.AuthenticationError(
            "invalid x-api-key", response=self._response(401), body=None
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.chat([Message.user("Hi")])

        assert exc_info.value.error_type == ErrorType.AUTH

    @pytest.mark.asyncio
    async def test_rate_limit_error(self, provider, mock_client):
        import anthropic

        mock_client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=self._response(429), body=None
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.chat([Message.user("Hi")])

        assert exc_info.value.error_type == ErrorType.RATE_LIMIT

    @pytest.mark.asyncio
    async def test_connection_error_is_recoverable(self, provider, mock_client):
        import anthropic

        mock_client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.chat([Message.user("Hi")])

        assert exc_info.value.error_type == ErrorType.RECOVERABLE
