"""Tool catalog, registry and handler groups for the agent."""

from .definitions import (
    DEBUG_TOOL_NAMES,
    STANDARD_BAUD_RATES,
    TOOL_DEFINITIONS,
    ToolName,
)
from .editor_tools import EditorTools
from .environment import ToolEnvironment
from .memory_tools import MemoryTools
from .registry import ToolRegistry
from .serial_tools import SerialTools
from .sketch_tools import SketchTools

__all__ = [
    "DEBUG_TOOL_NAMES",
    "STANDARD_BAUD_RATES",
    "TOOL_DEFINITIONS",
    "ToolName",
    "ToolRegistry",
    "ToolEnvironment",
    "SketchTools",
    "SerialTools",
    "EditorTools",
    "MemoryTools",
]
