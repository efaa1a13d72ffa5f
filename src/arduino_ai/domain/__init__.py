"""Domain entities, port interfaces and exceptions for the agent."""

from .entities import (
    AgentMode,
    ChatResponse,
    CompileResult,
    EnvironmentSnapshot,
    ErrorAnalysis,
    ErrorSignature,
    ErrorType,
    ExecutionOutcome,
    Fix,
    FixAssociation,
    FixMatch,
    FuzzyMatch,
    MemoryStats,
    Message,
    MessageRole,
    QueryResult,
    SimilarErrorResult,
    TokenUsage,
    ToolCall,
    ToolDefinition,
    ToolResult,
    UploadResult,
    ValidationResult,
)
from .exceptions import (
    AgentError,
    CollaboratorError,
    ConfigurationError,
    InvalidAPIKeyError,
    IterationLimitError,
    ProviderError,
    ToolEnvironmentError,
    ToolValidationError,
    UnknownToolError,
)
from .ports import (
    ICompilerService,
    IEditorState,
    ILLMProvider,
    IMemoryStore,
    ISerialTransport,
)

__all__ = [
    # Entities
    "AgentMode",
    "ChatResponse",
    "CompileResult",
    "EnvironmentSnapshot",
    "ErrorAnalysis",
    "ErrorSignature",
    "ErrorType",
    "ExecutionOutcome",
    "Fix",
    "FixAssociation",
    "FixMatch",
    "FuzzyMatch",
    "MemoryStats",
    "Message",
    "MessageRole",
    "QueryResult",
    "SimilarErrorResult",
    "TokenUsage",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "UploadResult",
    "ValidationResult",
    # Exceptions
    "AgentError",
    "CollaboratorError",
    "ConfigurationError",
    "InvalidAPIKeyError",
    "IterationLimitError",
    "ProviderError",
    "ToolEnvironmentError",
    "ToolValidationError",
    "UnknownToolError",
    # Ports
    "ICompilerService",
    "IEditorState",
    "ILLMProvider",
    "IMemoryStore",
    "ISerialTransport",
]
