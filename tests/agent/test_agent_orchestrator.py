"""
Tests for the agent orchestrator tool-use loop and analysis shortcuts.
"""

import json

import pytest

from arduino_ai.domain.entities import (
    AgentMode,
    EnvironmentSnapshot,
    ErrorType,
    MessageRole,
    ToolCall,
)
from arduino_ai.domain.exceptions import ConfigurationError, ProviderError
from arduino_ai.orchestrator.agent import AgentConfig, AgentOrchestrator
from arduino_ai.orchestrator.prompt_builder import ASK_PROMPT, DEBUG_PROMPT, SYSTEM_PROMPT
from arduino_ai.providers.registry import default_registry

from fakes import SKETCH_PATH, ScriptedProvider, text_response, tool_response


SYNC_ERROR = "avrdude: stk500_getsync() attempt 10 of 10: not in sync: resp=0x00"


@pytest.fixture
def make_agent(executor, memory_store):
    """Build an orchestrator around the shared executor."""

    def _make(provider=None, max_iterations=10, registry=None):
        return AgentOrchestrator(
            tool_executor=executor,
            memory_store=memory_store,
            provider_registry=registry,
            provider=provider,
            config=AgentConfig(max_iterations=max_iterations),
        )

    return _make


class TestProcessQuery:
    """Tests for the tool-use loop."""

    @pytest.mark.asyncio
    async def test_text_only_response(self, make_agent):
        provider = ScriptedProvider([text_response("Use a 220 ohm resistor.")])
        agent = make_agent(provider)

        result = await agent.process_query("Which resistor for an LED?")

        assert result.ok
        assert result.response == "Use a 220 ohm resistor."
        assert result.tool_results == []
        assert result.usage.input_tokens == 10
        assert [m.role for m in agent.history] == [MessageRole.USER, MessageRole.ASSISTANT]

    @pytest.mark.asyncio
    async def test_empty_tool_call_list_is_final(self, make_agent):
        provider = ScriptedProvider([tool_response(content="Pin 13 drives the onboard LED.")])
        agent = make_agent(provider)

        result = await agent.process_query("Which pin is the LED on?")

        assert result.ok
        assert result.response == "Pin 13 drives the onboard LED."
        assert result.tool_results == []
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_context_tag_prefix(self, make_agent):
        provider = ScriptedProvider([text_response("ok")])
        agent = make_agent(provider)

        await agent.process_query("Compile it")
        await agent.process_query("Hi", context=EnvironmentSnapshot())

        first, second = agent.history[0], agent.history[2]
        assert first.content.startswith(f"[IDE: sketch={SKETCH_PATH}, board=arduino:avr:uno")
        assert first.content.endswith("Compile it")
        assert second.content.startswith("[IDE: NO_FILE_OPEN]")

    @pytest.mark.asyncio
    async def test_tool_results_in_order_with_ids(self, make_agent):
        """Tool messages follow the proposed order and carry the call ids."""
        calls = [
            ToolCall(name="get_baud_rate", arguments={}, id="call_a"),
            ToolCall(name="format_disk", arguments={}, id="call_b"),
            ToolCall(name="list_ports", arguments={}, id="call_c"),
        ]
        provider = ScriptedProvider([tool_response(*calls), text_response("Done")])
        agent = make_agent(provider)

        result = await agent.process_query("Check the setup")

        assert result.response == "Done"
        assert [r.tool_call_id for r in result.tool_results] == ["call_a", "call_b", "call_c"]
        assert [r.success for r in result.tool_results] == [True, False, True]

        history = agent.history
        assert history[1].role == MessageRole.ASSISTANT
        assert [tc.id for tc in history[1].tool_calls] == ["call_a", "call_b", "call_c"]
        tool_messages = history[2:5]
        assert [m.role for m in tool_messages] == [MessageRole.TOOL] * 3
        assert [m.tool_call_id for m in tool_messages] == ["call_a", "call_b", "call_c"]
        assert [m.name for m in tool_messages] == ["get_baud_rate", "format_disk", "list_ports"]
        assert json.loads(tool_messages[1].content)["error_kind"] == "validation"

        # Second round sees the tool results
        second_round = provider.calls[1]["messages"]
        assert second_round[-1].tool_call_id == "call_c"

    @pytest.mark.asyncio
    async def test_iteration_cap(self, make_agent):
        """A model that always calls tools stops after exactly max_iterations rounds."""
        provider = ScriptedProvider([
            tool_response(ToolCall(name="get_baud_rate", arguments={}))
        ])
        agent = make_agent(provider, max_iterations=3)

        result = await agent.process_query("Loop forever")

        assert len(provider.calls) == 3
        assert result.warning == "max_iterations_reached"
        assert result.error_type == "iteration_limit"
        assert len(result.tool_results) == 3
        assert "Maximum iterations reached (3)" in result.response
        assert not result.ok

    @pytest.mark.asyncio
    async def test_mode_tools_and_prompts(self, make_agent):
        provider = ScriptedProvider([text_response("ok")])
        agent = make_agent(provider)

        await agent.process_query("q1", mode="ask")
        await agent.process_query("q2", mode=AgentMode.DEBUG)
        await agent.process_query("q3")

        ask_call, debug_call, agent_call = provider.calls
        assert ask_call["tools"] is None
        assert ask_call["system_prompt"] == ASK_PROMPT
        assert [t.name for t in debug_call["tools"]] == ["analyze_error", "search_memory", "record_fix"]
        assert debug_call["system_prompt"] == DEBUG_PROMPT
        assert len(agent_call["tools"]) == 23
        assert agent_call["system_prompt"] == SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_ask_mode_is_single_round(self, make_agent):
        provider = ScriptedProvider([
            tool_response(ToolCall(name="list_ports", arguments={}), content="Here you go")
        ])
        agent = make_agent(provider)

        result = await agent.process_query("Ports?", mode="ask")

        assert len(provider.calls) == 1
        assert result.response == "Here you go"
        assert result.tool_results == []

    @pytest.mark.asyncio
    async def test_provider_error_is_returned(self, make_agent):
        provider = ScriptedProvider([
            ProviderError("Rate limited", provider="scripted", error_type=ErrorType.RATE_LIMIT)
        ])
        agent = make_agent(provider)

        result = await agent.process_query("Hello")

        assert result.error == "Rate limited"
        assert result.error_type == "rate_limit"
        assert result.response is None
        assert len(agent.history) == 1

    @pytest.mark.asyncio
    async def test_provider_error_after_tools_keeps_results(self, make_agent):
        provider = ScriptedProvider([
            tool_response(ToolCall(name="list_ports", arguments={})),
            ProviderError("boom", error_type=ErrorType.RECOVERABLE),
        ])
        agent = make_agent(provider)

        result = await agent.process_query("Hello")

        assert result.error_type == "recoverable"
        assert len(result.tool_results) == 1

    @pytest.mark.asyncio
    async def test_no_provider(self, make_agent):
        agent = make_agent()

        result = await agent.process_query("Hello")

        assert result.error_type == "configuration"
        assert result.error.startswith("No provider selected")
        assert agent.history == []

    @pytest.mark.asyncio
    async def test_unknown_mode(self, make_agent):
        agent = make_agent(ScriptedProvider([text_response("ok")]))

        result = await agent.process_query("Hello", mode="turbo")

        assert result.error_type == "configuration"

    @pytest.mark.asyncio
    async def test_clear_history(self, make_agent):
        agent = make_agent(ScriptedProvider([text_response("ok")]))
        await agent.process_query("Hello")

        agent.clear_history()

        assert agent.history == []


class TestProviderSelection:
    """Tests for set_provider/use_provider."""

    def test_set_provider_through_registry(self, make_agent):
        agent = make_agent(registry=default_registry())

        provider = agent.set_provider("ollama", model="llama3.1:8b")

        assert agent.provider is provider
        assert provider.model_name == "llama3.1:8b"
        assert "claude" in agent.available_providers()
        assert "llama3.1:8b" in agent.available_models()
        assert "gpt-4o" in agent.available_models("openai")

    def test_set_provider_without_registry(self, make_agent):
        agent = make_agent()
        with pytest.raises(ConfigurationError):
            agent.set_provider("claude", api_key="sk-ant-test-key-1234567890")

    def test_unknown_provider(self, make_agent):
        agent = make_agent(registry=default_registry())
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            agent.set_provider("watson")

    @pytest.mark.asyncio
    async def test_close_closes_replaced_providers(self, make_agent):
        first = ScriptedProvider([text_response("a")], name="first")
        second = ScriptedProvider([text_response("b")], name="second")
        agent = make_agent(first)

        agent.use_provider(second)
        await agent.close()

        assert first.closed and second.closed


class TestAnalyzeError:
    """Memory-first error analysis."""

    @pytest.mark.asyncio
    async def test_known_fix_answers_from_memory(self, make_agent, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)
        await memory_store.record_fix(sig, "Press reset right before upload")
        provider = ScriptedProvider([text_response("should not be called")])
        agent = make_agent(provider)

        analysis = await agent.analyze_error(SYNC_ERROR)

        assert analysis.source == "memory"
        assert analysis.confidence == 1.0
        assert analysis.fixes[0].fix.description == "Press reset right before upload"
        assert provider.calls == []
        assert (await memory_store.get_error(sig)).occurrence_count == 2

    @pytest.mark.asyncio
    async def test_no_provider_returns_memory_hints(self, make_agent, memory_store):
        await memory_store.record_error("avrdude: stk500_getsync() attempt 1 of 10")
        agent = make_agent()

        analysis = await agent.analyze_error("stk500_getsync failed")

        assert analysis.source == "memory"
        assert analysis.message.startswith("No AI provider configured")
        assert len(analysis.fuzzy_matches) == 1

    @pytest.mark.asyncio
    async def test_provider_analysis_in_debug_mode(self, make_agent, memory_store):
        await memory_store.record_error("avrdude: stk500_getsync() attempt 1 of 10")
        provider = ScriptedProvider([text_response("Check the port selection.")])
        agent = make_agent(provider)

        analysis = await agent.analyze_error("stk500_getsync failed", context={"board": "uno"})

        assert analysis.source == "ai"
        assert analysis.analysis == "Check the port selection."
        assert analysis.query_result.ok
        request = provider.calls[0]
        assert request["system_prompt"] == DEBUG_PROMPT
        prompt = request["messages"][-1].content
        assert "Error: stk500_getsync failed" in prompt
        assert "Similar Past Errors" in prompt


class TestAnalyzeSerialOutput:
    """Serial output analysis."""

    @pytest.mark.asyncio
    async def test_known_error_line_answers_from_memory(self, make_agent, memory_store):
        line = "E (123) wifi: Connection failed: AUTH_EXPIRE"
        sig = await memory_store.record_error(line)
        await memory_store.record_fix(sig, "Check the WiFi password")
        agent = make_agent(ScriptedProvider([text_response("unused")]))

        analysis = await agent.analyze_serial_output(f"boot ok\n{line}\nretrying")

        assert analysis.source == "memory"
        assert analysis.fixes[0].fix.description == "Check the WiFi password"

    @pytest.mark.asyncio
    async def test_no_provider_is_local(self, make_agent):
        agent = make_agent()

        analysis = await agent.analyze_serial_output("temp=21.5\ntemp=21.6")

        assert analysis.source == "local"

    @pytest.mark.asyncio
    async def test_only_tail_is_sent(self, make_agent):
        provider = ScriptedProvider([text_response("The board is idle.")])
        agent = make_agent(provider)
        output = "\n".join(f"reading {i}" for i in range(100))

        analysis = await agent.analyze_serial_output(output, lines=5)

        assert analysis.source == "ai"
        prompt = provider.calls[0]["messages"][-1].content
        assert "reading 95" in prompt
        assert "reading 94" not in prompt
        assert provider.calls[0]["tools"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lines", [0, -3])
    async def test_non_positive_line_count_sends_last_line(self, make_agent, lines):
        provider = ScriptedProvider([text_response("Still counting.")])
        agent = make_agent(provider)
        output = "\n".join(f"reading {i}" for i in range(100))

        await agent.analyze_serial_output(output, lines=lines)

        prompt = provider.calls[0]["messages"][-1].content
        assert "reading 99" in prompt
        assert "reading 98" not in prompt
        assert "reading 0\n" not in prompt
