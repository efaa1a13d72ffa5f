"""
Port interfaces (abstract base classes) for the agent.

These define the contracts that adapters and external collaborators
must implement. Following the Ports & Adapters (Hexagonal) architecture
pattern: the orchestration core only depends on these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from .entities import (
        ChatResponse,
        CompileResult,
        EnvironmentSnapshot,
        ErrorSignature,
        ExecutionOutcome,
        Fix,
        MemoryStats,
        Message,
        SimilarErrorResult,
        ToolDefinition,
        UploadResult,
    )


# ============================================
# LLM Provider Interface
# ============================================


class ILLMProvider(ABC):
    """Interface for LLM providers (Claude, GPT, Gemini, Ollama).

    Implementations handle the specifics of each vendor API while
    providing a consistent interface to the orchestrator.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name used by the registry (e.g., 'claude')."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier (e.g., 'gpt-4o-mini')."""
        pass

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        """Send the conversation and return a normalized response.

        Args:
            messages: Conversation history
            tools: Tools the model may call (None or empty for none)
            system_prompt: System prompt for this request
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Normalized ChatResponse

        Raises:
            ProviderError: On any vendor failure
        """
        pass

    def available_models(self) -> list[str]:
        """Models this provider offers."""
        return [self.model_name]

    async def close(self) -> None:
        """Release network resources."""
        return None


# ============================================
# Collaborator Interfaces
# ============================================


class ICompilerService(ABC):
    """Compiler/uploader collaborator (e.g. a wrapper around arduino-cli)."""

    @abstractmethod
    async def compile(self, sketch_path: str, board_fqbn: str) -> CompileResult:
        """Compile a sketch for a board."""
        pass

    @abstractmethod
    async def upload(self, sketch_path: str, board_fqbn: str, port: str) -> UploadResult:
        """Upload a sketch to a board on a port."""
        pass

    @abstractmethod
    async def list_boards(self) -> list[dict[str, Any]]:
        """List known boards."""
        pass

    @abstractmethod
    async def list_ports(self) -> list[dict[str, Any]]:
        """List available serial ports."""
        pass


class ISerialTransport(ABC):
    """Serial transport collaborator. Owns raw I/O, not buffering."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @property
    @abstractmethod
    def current_baud_rate(self) -> Optional[int]:
        pass

    @abstractmethod
    async def connect(self, port: str, baud_rate: int) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def send(self, data: str) -> None:
        pass

    @abstractmethod
    def on_data(self, callback: Callable[[Any], None]) -> None:
        """Register a callback invoked for every received chunk/line."""
        pass

    async def detect_baud_rate(self, port: str) -> Optional[int]:
        """Try common baud rates on a port; None when undetectable."""
        return None


class IEditorState(ABC):
    """Editor / IDE state collaborator."""

    @abstractmethod
    def snapshot(self) -> EnvironmentSnapshot:
        """Return the current IDE selections. Must not block."""
        pass

    @abstractmethod
    async def get_code(self) -> str:
        pass

    @abstractmethod
    async def set_code(self, code: str) -> None:
        pass

    @abstractmethod
    def get_current_path(self) -> Optional[str]:
        pass

    @abstractmethod
    async def save(self, path: Optional[str] = None) -> None:
        """Flush editor content to disk (to the current path when None)."""
        pass

    async def set_baud_rate(self, baud_rate: int) -> None:
        """Change the baud rate selected in the IDE."""
        raise NotImplementedError("This editor does not expose a baud rate selector")


# ============================================
# Memory Store Interface
# ============================================


class IMemoryStore(ABC):
    """Interface for the error-signature learning store."""

    @abstractmethod
    async def record_error(
        self,
        text: str,
        error_type: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> str:
        """Record an error occurrence and return its signature hash."""
        pass

    @abstractmethod
    async def search_similar(self, query: str, limit: int = 10) -> SimilarErrorResult:
        """Exact signature lookup, falling back to a weak fuzzy match."""
        pass

    @abstractmethod
    async def record_fix(
        self,
        signature: str,
        description: str,
        code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> Fix:
        """Associate a fix with a signature (hash or raw error text)."""
        pass

    @abstractmethod
    async def record_execution(
        self,
        tool: str,
        arguments: dict[str, Any],
        success: bool,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
    ) -> None:
        """Append to the bounded execution log."""
        pass

    @abstractmethod
    async def get_stats(self) -> MemoryStats:
        pass

    @abstractmethod
    async def get_error(self, signature_hash: str) -> Optional[ErrorSignature]:
        pass

    @abstractmethod
    async def recent_executions(self, limit: int = 20) -> list[ExecutionOutcome]:
        pass

    async def close(self) -> None:
        return None
