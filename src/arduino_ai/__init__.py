"""
Arduino AI Assistant Core.

Provider-agnostic AI orchestration for an Arduino IDE: a tool-calling
agent that can read and edit the open sketch, compile and upload it,
talk to the serial port, and learn from recurring errors.

Architecture:
- Domain: Core entities, exceptions and port interfaces
- Providers: LLM provider implementations (Claude, GPT, Gemini, Ollama)
- Tools: Closed tool catalog, validation and handlers
- Memory: SQLite error-signature store with fix learning
- Orchestrator: Tool-use loop and error analysis
"""

from .config import AgentSettings
from .domain.entities import (
    AgentMode,
    ChatResponse,
    EnvironmentSnapshot,
    ErrorAnalysis,
    ErrorType,
    Message,
    MessageRole,
    QueryResult,
    ToolCall,
    ToolDefinition,
    ToolResult,
)
from .domain.exceptions import (
    AgentError,
    CollaboratorError,
    ConfigurationError,
    InvalidAPIKeyError,
    ProviderError,
    ToolEnvironmentError,
    ToolValidationError,
)
from .factory import create_agent
from .memory import ErrorMemoryStore
from .orchestrator import AgentConfig, AgentOrchestrator, ToolExecutor
from .providers import FallbackProvider, ProviderRegistry, default_registry
from .tools import ToolName, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    # Entities
    "AgentMode",
    "ChatResponse",
    "EnvironmentSnapshot",
    "ErrorAnalysis",
    "ErrorType",
    "Message",
    "MessageRole",
    "QueryResult",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    # Exceptions
    "AgentError",
    "CollaboratorError",
    "ConfigurationError",
    "InvalidAPIKeyError",
    "ProviderError",
    "ToolEnvironmentError",
    "ToolValidationError",
    # Wiring
    "AgentSettings",
    "create_agent",
    # Components
    "AgentConfig",
    "AgentOrchestrator",
    "ToolExecutor",
    "ErrorMemoryStore",
    "FallbackProvider",
    "ProviderRegistry",
    "default_registry",
    "ToolName",
    "ToolRegistry",
]
