"""
Agent Orchestrator - Main coordinator for the Arduino assistant.

Runs the tool-use loop between the selected LLM provider and the tool
executor:
- Selects the system prompt and tool set for the agent mode
- Prefixes user messages with the IDE context tag
- Executes proposed tool calls sequentially, in order
- Feeds every result back to the model, correlated by call id
- Stops at the first text-only response or at max_iterations

Also provides error and serial output analysis that consults the error
memory before spending a provider round-trip.

One turn at a time per orchestrator: callers must not run two turns
concurrently on the same instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..domain.entities import (
    AgentMode,
    ChatResponse,
    EnvironmentSnapshot,
    ErrorAnalysis,
    ErrorType,
    FuzzyMatch,
    Message,
    QueryResult,
    SimilarErrorResult,
    ToolResult,
)
from ..domain.exceptions import ConfigurationError, IterationLimitError, ProviderError
from ..domain.ports import ILLMProvider, IMemoryStore
from ..memory.signatures import looks_like_error
from ..providers.registry import ProviderRegistry
from .prompt_builder import PromptBuilder
from .tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

NO_PROVIDER_MESSAGE = "No provider selected. Please configure an AI provider and API key."
MAX_ITERATIONS_WARNING = "max_iterations_reached"


@dataclass
class AgentConfig:
    """Configuration for the agent orchestrator.

    Attributes:
        max_iterations: Maximum provider rounds per query
        temperature: LLM temperature for responses
        max_tokens: Maximum tokens per provider response
        analysis_search_limit: Memory matches consulted by analyze_error
        serial_analysis_lines: Default number of trailing serial lines analyzed
    """

    max_iterations: int = 10
    temperature: float = 0.7
    max_tokens: int = 2000
    analysis_search_limit: int = 5
    serial_analysis_lines: int = 50


class AgentOrchestrator:
    """Main agent orchestrator.

    Coordinates between:
    - LLM provider for response generation
    - ToolExecutor for sketch, serial, editor and memory tools
    - Error memory for analysis shortcuts

    Usage:
        orchestrator = AgentOrchestrator(
            tool_executor=ToolExecutor(registry, memory, compiler, transport, editor),
            memory_store=memory,
            provider_registry=default_registry(),
        )
        orchestrator.set_provider("claude", api_key="sk-ant-...")

        result = await orchestrator.process_query("Why won't my sketch upload?")
        if result.ok:
            print(result.response)
    """

    def __init__(
        self,
        tool_executor: ToolExecutor,
        memory_store: IMemoryStore,
        provider_registry: Optional[ProviderRegistry] = None,
        provider: Optional[ILLMProvider] = None,
        config: Optional[AgentConfig] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        """Initialize the orchestrator.

        Args:
            tool_executor: Executor for all catalog tools
            memory_store: Error memory used by the analysis shortcuts
            provider_registry: Registry used by set_provider
            provider: Provider to use right away
            config: Agent configuration
            prompt_builder: Prompt builder (defaults to the built-in prompts)
        """
        self.tools = tool_executor
        self.memory = memory_store
        self.registry = provider_registry
        self.config = config or AgentConfig()
        self.prompts = prompt_builder or PromptBuilder()

        self._provider: Optional[ILLMProvider] = provider
        self._retired: list[ILLMProvider] = []
        self._history: list[Message] = []

    # ============================================
    # Provider Selection
    # ============================================

    @property
    def provider(self) -> Optional[ILLMProvider]:
        return self._provider

    def set_provider(
        self,
        name: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ILLMProvider:
        """Create a provider through the registry and select it.

        Raises:
            ConfigurationError: If there is no registry or the name is unknown
            InvalidAPIKeyError: If the key fails the provider's format check
        """
        if self.registry is None:
            raise ConfigurationError("No provider registry configured")

        provider = self.registry.create(name, api_key=api_key, model=model)
        self.use_provider(provider)
        return provider

    def use_provider(self, provider: ILLMProvider) -> None:
        """Select an already constructed provider.

        The previous provider is closed when the orchestrator closes.
        """
        if self._provider is not None and self._provider is not provider:
            self._retired.append(self._provider)
        self._provider = provider
        logger.info(f"Using provider {provider.name} with model {provider.model_name}")

    def available_providers(self) -> list[str]:
        if self.registry is not None:
            return self.registry.available_providers()
        return [self._provider.name] if self._provider else []

    def available_models(self, provider_name: Optional[str] = None) -> list[str]:
        """Models of the named provider, or of the current one."""
        if provider_name:
            if self.registry is None:
                raise ConfigurationError("No provider registry configured")
            return self.registry.available_models(provider_name)
        return self._provider.available_models() if self._provider else []

    # ============================================
    # Conversation
    # ============================================

    @property
    def history(self) -> list[Message]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
        logger.debug("Conversation history cleared")

    async def process_query(
        self,
        query: str,
        context: Optional[EnvironmentSnapshot] = None,
        mode: Union[AgentMode, str] = AgentMode.AGENT,
    ) -> QueryResult:
        """Run one user turn to completion.

        Never raises: provider failures, missing configuration and the
        iteration cap are all reported in the QueryResult.

        Args:
            query: User message
            context: IDE state (defaults to the editor's snapshot)
            mode: ask (no tools, one round), debug (memory tools) or agent

        Returns:
            QueryResult with the final text and every tool result
        """
        if self._provider is None:
            return QueryResult(
                response=None,
                error=NO_PROVIDER_MESSAGE,
                error_type="configuration",
            )

        try:
            mode = AgentMode(mode)
        except ValueError:
            return QueryResult(
                response=None,
                error=f"Unknown mode: {mode}. Use ask, debug or agent.",
                error_type="configuration",
            )

        self._history.append(Message.user(self._with_context(query, context)))

        tools = self.tools.registry.get_tools_for_mode(mode)
        system_prompt = self.prompts.build(mode)
        tool_results: list[ToolResult] = []
        response: Optional[ChatResponse] = None

        try:
            for iteration in range(1, self.config.max_iterations + 1):
                logger.debug(f"Provider round {iteration} ({mode.value} mode)")
                response = await self._provider.chat(
                    list(self._history),
                    tools=tools or None,
                    system_prompt=system_prompt,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                )

                if not response.has_tool_calls or mode == AgentMode.ASK:
                    self._history.append(Message.assistant(response.content))
                    return QueryResult(
                        response=response.content,
                        tool_results=tool_results,
                        usage=response.usage,
                        model=response.model,
                    )

                self._history.append(Message.assistant(response.content or None, response.tool_calls))

                results = await self.tools.execute_all(response.tool_calls)
                for tool_call, result in zip(response.tool_calls, results):
                    self._history.append(Message.tool_result(tool_call, result.to_content()))
                tool_results.extend(results)

        except ProviderError as e:
            logger.error(f"Provider {e.provider or self._provider.name} failed: {e.message}")
            return QueryResult(
                response=None,
                tool_results=tool_results,
                error=e.message,
                error_type=e.error_type.value,
            )
        except Exception as e:
            logger.exception(f"Query failed: {e}")
            return QueryResult(
                response=None,
                tool_results=tool_results,
                error=f"An error occurred: {e}",
                error_type=ErrorType.FATAL.value,
            )

        limit = IterationLimitError(self.config.max_iterations, tool_results)
        logger.warning(limit.message)
        return QueryResult(
            response=limit.message,
            tool_results=limit.tool_results,
            usage=response.usage if response else None,
            model=response.model if response else None,
            warning=MAX_ITERATIONS_WARNING,
            error_type="iteration_limit",
        )

    def _with_context(self, query: str, context: Optional[EnvironmentSnapshot]) -> str:
        if context is None and self.tools.env.editor is not None:
            try:
                context = self.tools.env.snapshot()
            except Exception as e:
                logger.warning(f"Could not read IDE state: {e}")
        if context is None:
            return query
        return f"{context.to_context_tag()}\n\n{query}"

    # ============================================
    # Analysis
    # ============================================

    async def analyze_error(
        self,
        error_message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> ErrorAnalysis:
        """Analyze an error, answering from memory when a known fix exists.

        Every analyzed error is recorded as an occurrence in memory.
        """
        similar = await self._search_memory(error_message)
        await self._record_occurrence(error_message, context)

        if similar.exact_match is not None and similar.fixes:
            logger.info(f"Known error {similar.exact_match.hash}, answering from memory")
            return ErrorAnalysis(
                source="memory",
                match=similar.exact_match,
                fixes=similar.fixes,
                confidence=1.0,
            )

        if self._provider is None:
            return ErrorAnalysis(
                source="memory",
                match=similar.exact_match,
                fuzzy_matches=similar.fuzzy_matches,
                confidence=similar.confidence if similar.found else None,
                message="No AI provider configured. Showing memory results only.",
            )

        prompt = self.prompts.error_analysis(error_message, context, similar.fuzzy_matches)
        result = await self.process_query(prompt, mode=AgentMode.DEBUG)
        return ErrorAnalysis(
            source="ai",
            analysis=result.response,
            match=similar.exact_match,
            fuzzy_matches=similar.fuzzy_matches,
            query_result=result,
        )

    async def analyze_serial_output(
        self,
        output: str,
        lines: Optional[int] = None,
    ) -> ErrorAnalysis:
        """Analyze the tail of the serial monitor output.

        Lines that look like errors are looked up in memory first.
        """
        lines = max(1, int(lines)) if lines is not None else self.config.serial_analysis_lines
        tail_lines = output.splitlines()[-lines:]
        tail = "\n".join(tail_lines)

        fuzzy: list[FuzzyMatch] = []
        for line in tail_lines:
            line = line.strip()
            if not line or not looks_like_error(line):
                continue
            similar = await self._search_memory(line)
            if similar.exact_match is not None and similar.fixes:
                return ErrorAnalysis(
                    source="memory",
                    match=similar.exact_match,
                    fixes=similar.fixes,
                    confidence=1.0,
                )
            fuzzy.extend(m for m in similar.fuzzy_matches if m not in fuzzy)

        if self._provider is None:
            return ErrorAnalysis(
                source="local",
                fuzzy_matches=fuzzy,
                message="No AI provider configured. Serial output logged but not analyzed.",
            )

        prompt = self.prompts.serial_analysis(tail)
        hints = self.prompts.format_memory_hints(fuzzy)
        if hints:
            prompt += f"\n\n{hints}"

        result = await self.process_query(prompt, mode=AgentMode.ASK)
        return ErrorAnalysis(
            source="ai",
            analysis=result.response,
            fuzzy_matches=fuzzy,
            query_result=result,
        )

    async def _search_memory(self, text: str) -> SimilarErrorResult:
        try:
            return await self.memory.search_similar(text, limit=self.config.analysis_search_limit)
        except Exception as e:
            logger.warning(f"Memory search failed: {e}")
            return SimilarErrorResult()

    async def _record_occurrence(self, text: str, context: Optional[dict[str, Any]]) -> None:
        try:
            await self.memory.record_error(text, context=context)
        except Exception as e:
            logger.warning(f"Failed to record error in memory: {e}")

    # ============================================
    # Lifecycle
    # ============================================

    async def close(self) -> None:
        """Close providers and the memory store."""
        providers = self._retired + ([self._provider] if self._provider else [])
        for provider in providers:
            try:
                await provider.close()
            except Exception as e:
                logger.warning(f"Failed to close provider {provider.name}: {e}")
        self._retired.clear()
        await self.memory.close()
        logger.info("Agent orchestrator closed")
