"""
Tool Executor.

Validates, dispatches and times tool calls. This is the single place
where handler exceptions are caught: every call returns a ToolResult,
and every dispatched call is appended to the memory store's execution
log. Collaborator failures are also recorded in the error memory.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Optional

from ..domain.entities import ToolCall, ToolResult
from ..domain.exceptions import (
    AgentError,
    CollaboratorError,
    ConfigurationError,
    ToolEnvironmentError,
    ToolValidationError,
    UnknownToolError,
)
from ..domain.ports import ICompilerService, IEditorState, IMemoryStore, ISerialTransport
from ..ring_buffer import RingBuffer
from ..tools.definitions import ToolName
from ..tools.editor_tools import EditorTools
from ..tools.environment import DEFAULT_SERIAL_BUFFER_SIZE, ToolEnvironment
from ..tools.memory_tools import MemoryTools
from ..tools.registry import ToolRegistry
from ..tools.serial_tools import SerialTools
from ..tools.sketch_tools import SketchTools

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class ToolExecutor:
    """Executes tool calls with error handling.

    Usage:
        executor = ToolExecutor(
            registry=ToolRegistry(),
            memory=ErrorMemoryStore(),
            compiler=arduino_cli,
            transport=serial_port,
            editor=ide_state,
        )

        result = await executor.execute(tool_call)
        if not result.success:
            print(result.error_kind, result.error)

    Architecture:
        - ToolRegistry validates the call before any handler runs
        - A flat ToolName -> handler table is built from the handler groups
        - Missing arguments are defaulted from the editor's snapshot
        - All exceptions become ToolResult(success=False)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        memory: IMemoryStore,
        compiler: Optional[ICompilerService] = None,
        transport: Optional[ISerialTransport] = None,
        editor: Optional[IEditorState] = None,
        serial_buffer_size: int = DEFAULT_SERIAL_BUFFER_SIZE,
    ):
        """Initialize the tool executor.

        Raises:
            ConfigurationError: If a catalog tool has no handler
        """
        self.registry = registry
        self.memory = memory
        self.env = ToolEnvironment(
            memory=memory,
            compiler=compiler,
            transport=transport,
            editor=editor,
            serial_buffer=RingBuffer(serial_buffer_size),
        )

        self._handlers: dict[str, ToolHandler] = {}
        for group in (
            SketchTools(self.env),
            SerialTools(self.env),
            EditorTools(self.env),
            MemoryTools(self.env),
        ):
            for name, handler in group.handlers().items():
                self._handlers[name.value] = handler

        missing = [name.value for name in ToolName if name.value not in self._handlers]
        if missing:
            raise ConfigurationError(
                f"No handler registered for tools: {', '.join(missing)}",
                details={"missing": missing},
            )

        logger.info(f"Tool executor ready with {len(self._handlers)} handlers")

    @property
    def serial_buffer(self) -> RingBuffer:
        return self.env.serial_buffer

    def has_handler(self, name: str) -> bool:
        return name in self._handlers

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute a tool call. Never raises.

        Args:
            tool_call: Tool call proposed by the LLM

        Returns:
            ToolResult (success or typed failure)
        """
        validation = self.registry.validate(tool_call)
        if not validation.valid:
            logger.info(f"Rejected tool call {tool_call.name}: {validation.error}")
            return ToolResult(
                success=False,
                tool=tool_call.name,
                error=validation.error,
                error_kind=ToolValidationError.error_kind,
                tool_call_id=tool_call.id,
            )

        handler = self._handlers.get(tool_call.name)
        if handler is None:
            error = UnknownToolError(f"Unknown tool: {tool_call.name}", tool=tool_call.name)
            return ToolResult(
                success=False,
                tool=tool_call.name,
                error=error.message,
                error_kind=error.error_kind,
                tool_call_id=tool_call.id,
            )

        logger.info(f"Executing tool: {tool_call.name}")
        started = time.perf_counter()

        try:
            payload = await handler(tool_call.arguments)
            result = ToolResult(success=True, tool=tool_call.name, result=payload)
            logger.debug(f"Tool {tool_call.name} result: {payload}")

        except CollaboratorError as e:
            logger.warning(f"Tool {tool_call.name} failed: {e.message[:200]}")
            if e.signature_hash is None:
                e.signature_hash = await self._record_failure(tool_call, e)
            failure: dict[str, Any] = {}
            if e.output is not None:
                failure["output"] = e.output
            if e.signature_hash is not None:
                failure["signatureHash"] = e.signature_hash
            result = ToolResult(
                success=False,
                tool=tool_call.name,
                result=failure or None,
                error=e.message,
                error_kind=e.error_kind,
            )

        except (ToolValidationError, ToolEnvironmentError) as e:
            logger.info(f"Tool {tool_call.name} not run: {e.message}")
            result = ToolResult(
                success=False,
                tool=tool_call.name,
                error=e.message,
                error_kind=e.error_kind,
            )

        except AgentError as e:
            logger.error(f"Tool {tool_call.name} failed: {e.message}")
            result = ToolResult(
                success=False, tool=tool_call.name, error=e.message, error_kind="internal"
            )

        except Exception as e:
            logger.exception(f"Tool execution failed: {e}")
            result = ToolResult(
                success=False,
                tool=tool_call.name,
                error=str(e) or e.__class__.__name__,
                error_kind="internal",
            )

        result.execution_time_ms = int((time.perf_counter() - started) * 1000)
        result.tool_call_id = tool_call.id

        await self._log_execution(tool_call, result)
        return result

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ToolResult]:
        """Execute tool calls sequentially, in the order given.

        A failed call does not stop execution of the following calls.
        """
        results = []
        for tool_call in tool_calls:
            results.append(await self.execute(tool_call))
        return results

    async def _record_failure(self, tool_call: ToolCall, error: CollaboratorError) -> Optional[str]:
        """Record collaborator failure output in the error memory.

        Returns the signature hash, or None when the store is unavailable.
        """
        context = {"tool": tool_call.name, **error.details}
        try:
            return await self.memory.record_error(error.output or error.message, context=context)
        except Exception as e:
            logger.warning(f"Failed to record {tool_call.name} error in memory: {e}")
            return None

    async def _log_execution(self, tool_call: ToolCall, result: ToolResult) -> None:
        try:
            await self.memory.record_execution(
                tool_call.name,
                tool_call.arguments,
                result.success,
                error=result.error,
                execution_time_ms=result.execution_time_ms,
            )
        except Exception as e:
            logger.warning(f"Failed to record execution of {tool_call.name}: {e}")
