"""Agent Orchestrator.

Coordinates the LLM provider, the tool executor and the error memory:
- Main orchestrator and configuration
- Tool execution that never raises
- Prompt building per agent mode
"""

from .agent import AgentConfig, AgentOrchestrator
from .prompt_builder import PromptBuilder
from .tool_executor import ToolExecutor

__all__ = [
    "AgentOrchestrator",
    "AgentConfig",
    "ToolExecutor",
    "PromptBuilder",
]
