"""Exception hierarchy for the Arduino AI agent.

Exception Hierarchy:
    AgentError (base)
    ├── ToolValidationError (bad tool name / missing required argument)
    │   └── UnknownToolError (validated name with no handler)
    ├── ToolEnvironmentError (required IDE context is absent)
    ├── CollaboratorError (compiler, transport or editor failed)
    ├── ProviderError (LLM vendor call failed)
    │   └── InvalidAPIKeyError
    ├── IterationLimitError (tool loop exceeded its cap)
    └── ConfigurationError (invalid settings or unknown provider)

The tool executor and orchestrator convert these into data
(ToolResult / QueryResult) at their public boundaries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from .entities import ErrorType

# ============================================
# Base Exception
# ============================================


class AgentError(Exception):
    """Base exception for all agent errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether retrying might succeed
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Tool Errors
# ============================================


class ToolValidationError(AgentError):
    """Raised when a tool call is rejected before any side effect."""

    error_kind = "validation"

    def __init__(self, message: str, tool: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {}) or {}
        if tool:
            details["tool"] = tool
        super().__init__(message, details=details, **kwargs)
        self.tool = tool


class UnknownToolError(ToolValidationError):
    """Raised when a tool name has no registered handler."""

    error_kind = "unknown_tool"


class ToolEnvironmentError(AgentError):
    """Raised when required IDE context (open sketch, board, port) is absent.

    The message is meant to be shown to the user as-is.
    """

    error_kind = "environment"


class CollaboratorError(AgentError):
    """Raised when the compiler, serial transport or editor fails.

    Attributes:
        output: Raw collaborator output, passed through verbatim
        signature_hash: Error signature recorded in the memory store, if any
    """

    error_kind = "collaborator"

    def __init__(
        self,
        message: str,
        output: Optional[str] = None,
        signature_hash: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, recoverable=True, **kwargs)
        self.output = output
        self.signature_hash = signature_hash


# ============================================
# Provider Errors
# ============================================


class ProviderError(AgentError):
    """Raised when an LLM vendor call fails.

    Attributes:
        provider: Provider name
        error_type: Category used by the fallback chain and callers
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        error_type: ErrorType = ErrorType.RECOVERABLE,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            details={"provider": provider} if provider else None,
            cause=cause,
            recoverable=error_type != ErrorType.FATAL,
        )
        self.provider = provider
        self.error_type = error_type


class InvalidAPIKeyError(ProviderError):
    """Raised when a credential fails the provider's format check."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider, error_type=ErrorType.AUTH)


# ============================================
# Orchestration Errors
# ============================================


class IterationLimitError(AgentError):
    """Raised when the tool loop reaches max_iterations.

    Attributes:
        iterations: Number of provider rounds performed
        tool_results: Partial tool results gathered before the cap
    """

    def __init__(self, iterations: int, tool_results: Optional[list] = None):
        super().__init__(
            f"Maximum iterations reached ({iterations}). Please refine your query.",
            details={"iterations": iterations},
        )
        self.iterations = iterations
        self.tool_results = tool_results or []


class ConfigurationError(AgentError):
    """Raised when settings are missing or invalid."""
