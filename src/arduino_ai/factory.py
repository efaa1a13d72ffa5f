"""
Wiring of the agent from settings.

create_agent builds the memory store, tool executor, provider chain and
orchestrator. Provider construction failures are logged and skipped so
the agent still starts (memory-only) without any working API key.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import AgentSettings
from .domain.ports import ICompilerService, IEditorState, ILLMProvider, ISerialTransport
from .memory.error_store import ErrorMemoryStore
from .orchestrator.agent import AgentConfig, AgentOrchestrator
from .orchestrator.tool_executor import ToolExecutor
from .providers.fallback import FallbackProvider
from .providers.registry import ProviderRegistry, default_registry
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def build_provider(
    settings: AgentSettings,
    registry: ProviderRegistry,
) -> Optional[ILLMProvider]:
    """Create the configured provider, wrapped in a fallback chain when needed.

    Returns:
        The provider, or None when no provider could be initialized
    """
    names = [settings.provider]
    names.extend(n for n in settings.fallback_providers if n not in names)

    providers: list[ILLMProvider] = []
    for index, name in enumerate(names):
        model = settings.model if index == 0 else None
        extra = {}
        if name == "ollama":
            model = model or settings.ollama_model
            if settings.ollama_base_url:
                extra["base_url"] = settings.ollama_base_url
        try:
            provider = registry.create(
                name,
                api_key=settings.api_key_for(name),
                model=model,
                temperature=settings.temperature,
                **extra,
            )
        except Exception as e:
            logger.warning(f"Failed to initialize {name} provider: {e}")
            continue
        providers.append(provider)

    if not providers:
        logger.warning("No LLM provider could be initialized - analysis will use memory only")
        return None
    if len(providers) == 1:
        return providers[0]

    logger.info(f"Provider fallback chain: {', '.join(p.name for p in providers)}")
    return FallbackProvider(providers)


def create_agent(
    settings: Optional[AgentSettings] = None,
    compiler: Optional[ICompilerService] = None,
    transport: Optional[ISerialTransport] = None,
    editor: Optional[IEditorState] = None,
    registry: Optional[ProviderRegistry] = None,
) -> AgentOrchestrator:
    """Build a ready-to-use orchestrator.

    Args:
        settings: Agent settings (default: AgentSettings.from_env())
        compiler: Arduino compiler/uploader service
        transport: Serial port transport
        editor: IDE editor state
        registry: Provider registry (default: all built-in providers)

    Returns:
        AgentOrchestrator with the configured provider selected, if any
    """
    settings = settings or AgentSettings.from_env()
    registry = registry or default_registry(
        timeout=settings.provider_timeout,
        max_tokens=settings.max_tokens,
    )

    memory = ErrorMemoryStore(
        db_path=settings.memory_db_path,
        execution_log_size=settings.execution_log_size,
    )
    executor = ToolExecutor(
        registry=ToolRegistry(),
        memory=memory,
        compiler=compiler,
        transport=transport,
        editor=editor,
        serial_buffer_size=settings.serial_buffer_size,
    )
    config = AgentConfig(
        max_iterations=settings.max_iterations,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )

    orchestrator = AgentOrchestrator(
        tool_executor=executor,
        memory_store=memory,
        provider_registry=registry,
        provider=build_provider(settings, registry),
        config=config,
    )
    logger.info("Agent orchestrator initialized successfully")
    return orchestrator
