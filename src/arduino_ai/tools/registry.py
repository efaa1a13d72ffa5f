"""
Tool Registry.

Read-only view over the tool catalog: lookup, validation of proposed
tool calls and mode-dependent tool visibility.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from ..domain.entities import AgentMode, ToolCall, ToolDefinition, ValidationResult
from ..domain.exceptions import ConfigurationError
from .definitions import DEBUG_TOOL_NAMES, TOOL_DEFINITIONS

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of all agent tools.

    Validation only checks that the tool exists and that every required
    parameter is present; argument types are left to the handlers.

    Usage:
        registry = ToolRegistry()

        tools = registry.get_tools_for_mode("debug")
        result = registry.validate(tool_call)
        if not result.valid:
            print(result.error)
    """

    def __init__(self, tools: Optional[tuple[ToolDefinition, ...]] = None):
        """Initialize the tool registry.

        Args:
            tools: Catalog to serve (defaults to the built-in catalog)
        """
        self._tools: dict[str, ToolDefinition] = {
            tool.name: tool for tool in (tools if tools is not None else TOOL_DEFINITIONS)
        }
        self._subsets: dict[str, tuple[str, ...]] = {
            "debug": tuple(name.value for name in DEBUG_TOOL_NAMES),
        }
        logger.debug(f"Tool registry loaded {len(self._tools)} tools")

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def get_all(self) -> list[ToolDefinition]:
        """Get all tool definitions in catalog order."""
        return list(self._tools.values())

    def get_by_name(self, name: str) -> Optional[ToolDefinition]:
        """Find a tool definition by name."""
        return self._tools.get(name)

    def get_subset(self, name: str) -> list[ToolDefinition]:
        """Get a named subset of tools (e.g. 'debug').

        Raises:
            ConfigurationError: If the subset is unknown
        """
        names = self._subsets.get(name)
        if names is None:
            raise ConfigurationError(f"Unknown tool subset: {name}")
        return [self._tools[n] for n in names if n in self._tools]

    def get_tools_for_mode(self, mode: Union[AgentMode, str]) -> list[ToolDefinition]:
        """Tools visible to the model in a given mode.

        ask -> no tools, debug -> the debug subset, agent -> everything.
        """
        mode = AgentMode(mode)
        if mode == AgentMode.ASK:
            return []
        if mode == AgentMode.DEBUG:
            return self.get_subset("debug")
        return self.get_all()

    def validate(self, tool_call: ToolCall) -> ValidationResult:
        """Validate a proposed tool call against the catalog.

        Args:
            tool_call: Tool call from the LLM

        Returns:
            ValidationResult with the first problem found
        """
        if not tool_call.name:
            return ValidationResult(valid=False, error="Tool name is required")

        tool = self._tools.get(tool_call.name)
        if tool is None:
            return ValidationResult(valid=False, error=f"Unknown tool: {tool_call.name}")

        if not isinstance(tool_call.arguments, dict):
            return ValidationResult(
                valid=False,
                error=f"Arguments for {tool_call.name} must be an object",
            )

        for param in tool.parameters.get("required", []):
            if param not in tool_call.arguments:
                return ValidationResult(
                    valid=False, error=f"Missing required parameter: {param}"
                )

        return ValidationResult(valid=True)
