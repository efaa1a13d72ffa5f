"""
Domain entities for the Arduino AI agent.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures used throughout the agent:
conversation messages, tool calls and results, provider responses,
and the records kept by the error memory store.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

# ============================================
# Message Types
# ============================================


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass
class ToolCall:
    """A tool call proposed by the LLM.

    Attributes:
        name: Tool name being called
        arguments: Arguments passed to the tool
        id: Opaque identifier used to correlate the result message
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"call_{uuid.uuid4().hex[:24]}")


@dataclass
class Message:
    """A single message in a conversation.

    Attributes:
        role: Message role (user, assistant, system, tool)
        content: Message text content (None for pure tool-call turns)
        tool_calls: Tool calls proposed in an assistant message
        tool_call_id: For tool messages, the id of the call being answered
        name: For tool messages, the name of the tool that produced it
    """

    role: MessageRole
    content: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls, content: Optional[str], tool_calls: Optional[list[ToolCall]] = None
    ) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool_result(cls, tool_call: ToolCall, content: str) -> Message:
        return cls(
            role=MessageRole.TOOL,
            content=content,
            tool_call_id=tool_call.id,
            name=tool_call.name,
        )


# ============================================
# Tool System
# ============================================


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of an available tool.

    Immutable catalog entry and the single source of truth for validation.

    Attributes:
        name: Tool name (e.g., 'compile_sketch')
        description: Human-readable description
        parameters: JSON Schema object describing the arguments
    """

    name: str
    description: str
    parameters: dict[str, Any]

    @property
    def required(self) -> frozenset[str]:
        """Names of parameters that must be present in a call."""
        return frozenset(self.parameters.get("required", []))

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_format(self) -> dict[str, Any]:
        """Convert to Anthropic tool use format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_gemini_format(self) -> dict[str, Any]:
        """Convert to a Gemini function declaration.

        Gemini accepts an OpenAPI subset: unsupported keywords are dropped
        and an object without properties is sent without a schema.
        """
        declaration: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        schema = _gemini_schema(self.parameters)
        if schema.get("properties"):
            declaration["parameters"] = schema
        return declaration


_GEMINI_UNSUPPORTED_KEYS = {"default", "additionalProperties", "$schema", "examples"}


def _gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in schema.items():
        if key in _GEMINI_UNSUPPORTED_KEYS:
            continue
        if key == "properties":
            if value:
                result["properties"] = {
                    prop: _gemini_schema(prop_schema) for prop, prop_schema in value.items()
                }
        elif key == "items" and isinstance(value, dict):
            result["items"] = _gemini_schema(value)
        elif key == "required":
            if value:
                result["required"] = list(value)
        else:
            result[key] = value
    return result


@dataclass
class ToolResult:
    """Result from a tool execution. Returned as data, never raised.

    Attributes:
        success: Whether execution succeeded
        tool: Name of the tool that ran
        result: Result payload (if successful)
        error: Error message (if failed)
        error_kind: validation, unknown_tool, environment, collaborator or internal
        execution_time_ms: Wall-clock execution time
        tool_call_id: ID of the tool call this is a result for
    """

    success: bool
    tool: str
    result: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    execution_time_ms: Optional[int] = None
    tool_call_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting unset fields."""
        data: dict[str, Any] = {"success": self.success, "tool": self.tool}
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        if self.error_kind is not None:
            data["error_kind"] = self.error_kind
        if self.execution_time_ms is not None:
            data["execution_time_ms"] = self.execution_time_ms
        return data

    def to_content(self) -> str:
        """Serialize for a tool-result message."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class ValidationResult:
    """Outcome of validating a tool call against the catalog."""

    valid: bool
    error: Optional[str] = None


# ============================================
# Provider Responses
# ============================================


class ErrorType(str, Enum):
    """Types of provider errors."""

    RECOVERABLE = "recoverable"  # Can retry
    FATAL = "fatal"  # Must abort
    TIMEOUT = "timeout"  # Provider timeout
    RATE_LIMIT = "rate_limit"  # Rate limited or quota exceeded
    AUTH = "auth"  # Credential rejected


@dataclass
class TokenUsage:
    """Token accounting reported by a provider."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ChatResponse:
    """Normalized response from any provider.

    Attributes:
        content: Assistant text (empty string when the turn is only tool calls)
        tool_calls: Normalized tool calls, in the order the model proposed them
        usage: Token usage
        model: Model that produced the response
        provider: Provider name
    """

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    provider: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# ============================================
# Agent Modes and Environment
# ============================================


class AgentMode(str, Enum):
    """Tool visibility mode for a turn."""

    ASK = "ask"  # No tools, single round-trip
    DEBUG = "debug"  # Analysis/search/record tools only
    AGENT = "agent"  # Entire registry


@dataclass(frozen=True)
class EnvironmentSnapshot:
    """Synchronous snapshot of IDE state used for parameter defaulting.

    Attributes:
        sketch_path: Path of the currently open sketch
        selected_board: Selected board FQBN
        selected_port: Selected serial port
        baud_rate: Baud rate selected in the IDE
    """

    sketch_path: Optional[str] = None
    selected_board: Optional[str] = None
    selected_port: Optional[str] = None
    baud_rate: Optional[int] = None

    @property
    def has_file_open(self) -> bool:
        return bool(self.sketch_path)

    def to_context_tag(self) -> str:
        """Render the bracketed prefix prepended to user messages."""
        parts = []
        if not self.has_file_open:
            parts.append("NO_FILE_OPEN")
        else:
            parts.append(f"sketch={self.sketch_path}")
        if self.selected_board:
            parts.append(f"board={self.selected_board}")
        if self.selected_port:
            parts.append(f"port={self.selected_port}")
        return f"[IDE: {', '.join(parts)}]"


@dataclass
class QueryResult:
    """Result of one orchestrator turn.

    Every failure mode is represented here instead of being raised.

    Attributes:
        response: Final assistant text (or a user-facing failure message)
        tool_results: Results of every tool executed during the turn
        usage: Token usage of the last provider response
        model: Model of the last provider response
        warning: Non-fatal notice (e.g. max_iterations_reached)
        error: Error message when the turn failed
        error_type: Machine-readable failure category
    """

    response: Optional[str]
    tool_results: list[ToolResult] = field(default_factory=list)
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.warning is None


@dataclass
class ErrorAnalysis:
    """Result of analyze_error / analyze_serial_output.

    Attributes:
        source: 'memory', 'ai' or 'local'
        analysis: Provider analysis text (source='ai')
        match: Exact error signature match
        fixes: Known fixes for the exact match
        fuzzy_matches: Weak hints from the memory store
        confidence: 1.0 for exact memory hits
        message: Informational message (no provider, nothing found)
        query_result: Underlying orchestrator result for source='ai'
    """

    source: str
    analysis: Optional[str] = None
    match: Optional[ErrorSignature] = None
    fixes: list[FixMatch] = field(default_factory=list)
    fuzzy_matches: list[FuzzyMatch] = field(default_factory=list)
    confidence: Optional[float] = None
    message: Optional[str] = None
    query_result: Optional[QueryResult] = None


# ============================================
# Error Memory
# ============================================


@dataclass
class ErrorSignature:
    """Content-addressed identity of a normalized error message.

    Attributes:
        hash: 16 hex chars of sha256 over the normalized text
        raw_pattern: Error text as first observed
        error_type: Classified or caller-supplied category
        context: Arbitrary context from the first observation
        occurrence_count: Times this signature was recorded
        first_seen: Epoch milliseconds of the first observation
        last_seen: Epoch milliseconds of the latest observation
    """

    hash: str
    raw_pattern: str
    error_type: Optional[str] = None
    context: Optional[dict[str, Any]] = None
    occurrence_count: int = 1
    first_seen: int = 0
    last_seen: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Fix:
    """A fix recorded against an error signature."""

    id: str
    error_signature_hash: str
    description: str
    code: Optional[str] = None
    context: Optional[dict[str, Any]] = None
    created_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FixAssociation:
    """Many-to-many link between a signature and a fix, with confidence counters."""

    error_signature_hash: str
    fix_id: str
    success_count: int = 1
    failure_count: int = 0
    last_used: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FixMatch:
    """A fix returned from a search, with its association counters."""

    fix: Fix
    success_count: int
    failure_count: int

    def to_dict(self) -> dict[str, Any]:
        data = self.fix.to_dict()
        data["success_count"] = self.success_count
        data["failure_count"] = self.failure_count
        return data


@dataclass
class FuzzyMatch:
    """A weak, heuristic match from the memory store."""

    error: ErrorSignature
    fixes: list[FixMatch]
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error.to_dict(),
            "fixes": [f.to_dict() for f in self.fixes],
            "confidence": self.confidence,
        }


@dataclass
class SimilarErrorResult:
    """Result of ErrorMemoryStore.search_similar."""

    exact_match: Optional[ErrorSignature] = None
    fixes: list[FixMatch] = field(default_factory=list)
    fuzzy_matches: list[FuzzyMatch] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def found(self) -> bool:
        return self.exact_match is not None or bool(self.fuzzy_matches)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "confidence": self.confidence,
            "fuzzy_matches": [m.to_dict() for m in self.fuzzy_matches],
        }
        if self.exact_match is not None:
            data["exact_match"] = self.exact_match.to_dict()
            data["fixes"] = [f.to_dict() for f in self.fixes]
        return data


@dataclass
class ExecutionOutcome:
    """One entry of the bounded tool execution log."""

    tool: str
    arguments: dict[str, Any]
    success: bool
    error: Optional[str] = None
    timestamp_ms: int = 0
    execution_time_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MemoryStats:
    """Aggregate counters of the memory store."""

    error_count: int
    fix_count: int
    execution_count: int
    success_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ============================================
# Collaborator Results
# ============================================


@dataclass
class CompileResult:
    """Outcome of compiling a sketch."""

    success: bool
    output: str = ""
    warnings: list[str] = field(default_factory=list)


@dataclass
class UploadResult:
    """Outcome of uploading a sketch."""

    success: bool
    output: str = ""
