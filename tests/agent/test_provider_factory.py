"""
Tests for provider selection: the registry, the fallback chain and
build_provider wiring from settings.
"""

import pytest

from arduino_ai.config import AgentSettings
from arduino_ai.domain.entities import ErrorType, Message
from arduino_ai.domain.exceptions import ConfigurationError, InvalidAPIKeyError, ProviderError
from arduino_ai.factory import build_provider, create_agent
from arduino_ai.providers.anthropic import ANTHROPIC_AVAILABLE, AnthropicProvider
from arduino_ai.providers.fallback import FallbackProvider
from arduino_ai.providers.ollama import OllamaProvider
from arduino_ai.providers.registry import ProviderRegistry, default_registry

from fakes import ScriptedProvider, text_response


class TestProviderRegistry:
    """Tests for name-based provider lookup."""

    def test_default_registry_has_all_vendors(self):
        registry = default_registry()
        assert registry.available_providers() == ["claude", "openai", "gemini", "ollama"]

    def test_unknown_provider(self):
        registry = default_registry()
        with pytest.raises(ConfigurationError, match="Unknown provider: watson"):
            registry.create("watson")

    def test_create_applies_registry_defaults(self):
        registry = default_registry(timeout=5.0, max_tokens=512)

        provider = registry.create("ollama", model="mistral:7b")

        assert isinstance(provider, OllamaProvider)
        assert provider.config.timeout == 5.0
        assert provider.config.max_tokens == 512
        assert provider.model_name == "mistral:7b"

    @pytest.mark.skipif(not ANTHROPIC_AVAILABLE, reason="anthropic package not installed")
    def test_create_rejects_bad_key(self):
        with pytest.raises(InvalidAPIKeyError):
            default_registry().create("claude", api_key="not-a-claude-key")

    def test_register_custom_provider(self):
        registry = ProviderRegistry()
        registry.register("ollama", OllamaProvider)

        assert "ollama" in registry
        assert registry.available_models("ollama")[0] == "qwen3:4b"

    @pytest.mark.parametrize("model,expected", [
        ("claude-3-haiku-20240307", "claude"),
        ("gpt-4o", "openai"),
        ("o1-mini", "openai"),
        ("gemini-1.5-pro", "gemini"),
        ("llama3.1:8b", "ollama"),
        ("mystery-model", None),
        (None, None),
    ])
    def test_provider_for_model(self, model, expected):
        assert default_registry().provider_for_model(model) == expected

    def test_unified_model_list(self):
        models = default_registry().unified_model_list()
        sonnet = next(m for m in models if m["id"] == "claude-3-5-sonnet-20241022")
        assert sonnet == {
            "id": "claude-3-5-sonnet-20241022",
            "display_name": "Claude 3.5 Sonnet",
            "provider": "claude",
        }


class TestFallbackProvider:
    """Tests for the fallback chain."""

    @pytest.mark.asyncio
    async def test_first_provider_answers(self):
        first = ScriptedProvider([text_response("from first")], name="first")
        second = ScriptedProvider([text_response("from second")], name="second")
        chain = FallbackProvider([first, second])

        response = await chain.chat([Message.user("Hi")])

        assert response.content == "from first"
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_recoverable_error_falls_back(self):
        first = ScriptedProvider(
            [ProviderError("quota", provider="first", error_type=ErrorType.RATE_LIMIT)],
            name="first",
        )
        second = ScriptedProvider([text_response("from second")], name="second")
        chain = FallbackProvider([first, second])
        messages = [Message.user("Hi")]

        response = await chain.chat(messages, system_prompt="sys")

        assert response.content == "from second"
        assert second.calls[0]["messages"] == messages
        assert second.calls[0]["system_prompt"] == "sys"
        assert len(messages) == 1
        assert chain.model_name == "scripted-model"

    @pytest.mark.asyncio
    async def test_fatal_error_stops_chain(self):
        first = ScriptedProvider(
            [ProviderError("bad request", error_type=ErrorType.FATAL)], name="first"
        )
        second = ScriptedProvider([text_response("unused")], name="second")
        chain = FallbackProvider([first, second])

        with pytest.raises(ProviderError, match="bad request"):
            await chain.chat([Message.user("Hi")])

        assert second.calls == []

    @pytest.mark.asyncio
    async def test_exhausted_chain_raises_last_error(self):
        first = ScriptedProvider([ProviderError("timeout", error_type=ErrorType.TIMEOUT)], name="first")
        second = ScriptedProvider([ProviderError("down", error_type=ErrorType.RECOVERABLE)], name="second")
        chain = FallbackProvider([first, second])

        with pytest.raises(ProviderError, match="down"):
            await chain.chat([Message.user("Hi")])

    def test_empty_chain_rejected(self):
        with pytest.raises(ConfigurationError):
            FallbackProvider([])

    @pytest.mark.asyncio
    async def test_name_and_close(self):
        first = ScriptedProvider([text_response("a")], name="first")
        second = ScriptedProvider([text_response("b")], name="second")
        chain = FallbackProvider([first, second])

        assert chain.name == "fallback(first,second)"
        await chain.close()
        assert first.closed and second.closed


class TestBuildProvider:
    """Tests for provider construction from settings."""

    def test_invalid_primary_key_is_skipped(self):
        settings = AgentSettings(
            provider="openai",
            api_keys={"openai": "not-an-openai-key"},
            fallback_providers=["ollama"],
        )

        provider = build_provider(settings, default_registry())

        assert isinstance(provider, OllamaProvider)

    def test_no_working_provider(self):
        settings = AgentSettings(provider="claude", api_keys={})

        assert build_provider(settings, default_registry()) is None

    def test_ollama_model_and_base_url(self):
        settings = AgentSettings(
            provider="ollama",
            ollama_model="llama3.1:8b",
            ollama_base_url="http://gpu-box:11434",
        )

        provider = build_provider(settings, default_registry())

        assert provider.model_name == "llama3.1:8b"
        assert provider.base_url == "http://gpu-box:11434"

    @pytest.mark.skipif(not ANTHROPIC_AVAILABLE, reason="anthropic package not installed")
    def test_fallback_chain(self):
        settings = AgentSettings(
            provider="claude",
            model="claude-3-5-haiku-20241022",
            api_keys={"claude": "sk-ant-test-1234567890"},
            fallback_providers=["ollama", "claude"],
        )

        provider = build_provider(settings, default_registry())

        assert isinstance(provider, FallbackProvider)
        assert [p.name for p in provider.providers] == ["claude", "ollama"]
        assert isinstance(provider.providers[0], AnthropicProvider)
        assert provider.providers[0].model_name == "claude-3-5-haiku-20241022"
        assert provider.providers[1].model_name == "qwen3:4b"


class TestCreateAgent:
    """Tests for full agent wiring."""

    @pytest.mark.asyncio
    async def test_memory_only_agent(self):
        settings = AgentSettings(provider="claude", api_keys={}, memory_db_path=":memory:")

        agent = create_agent(settings)

        assert agent.provider is None
        assert agent.tools.serial_buffer.capacity == settings.serial_buffer_size
        analysis = await agent.analyze_error("avrdude: stk500_getsync() attempt 1 of 10")
        assert analysis.source == "memory"
        await agent.close()
