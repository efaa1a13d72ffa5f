"""
Sketch tools: compile, upload and board/port discovery.

Compile and upload flush the editor to disk first; upload also releases
the serial port. Failed compiles and uploads carry their raw output so the executor
can record it in the error memory.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from ..domain.exceptions import CollaboratorError
from .definitions import ToolName
from .environment import ToolEnvironment

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class SketchTools:
    """Handlers for compile_sketch, upload_sketch, list_boards and list_ports."""

    def __init__(self, env: ToolEnvironment):
        self.env = env

    def handlers(self) -> dict[ToolName, ToolHandler]:
        return {
            ToolName.COMPILE_SKETCH: self.compile_sketch,
            ToolName.UPLOAD_SKETCH: self.upload_sketch,
            ToolName.LIST_BOARDS: self.list_boards,
            ToolName.LIST_PORTS: self.list_ports,
        }

    async def compile_sketch(self, arguments: dict[str, Any]) -> dict[str, Any]:
        sketch_path = self.env.resolve_sketch_path(arguments)
        board = self.env.resolve_board(arguments)
        compiler = self.env.require_compiler()

        await self._save_editor(ToolName.COMPILE_SKETCH, sketch_path)

        logger.info(f"Compiling {sketch_path} for {board}")
        try:
            result = await compiler.compile(sketch_path, board)
        except CollaboratorError:
            raise
        except Exception as e:
            raise self._failure(ToolName.COMPILE_SKETCH, str(e), sketch_path, board, cause=e)

        if not result.success:
            raise self._failure(ToolName.COMPILE_SKETCH, result.output, sketch_path, board)

        return {
            "success": True,
            "sketchPath": sketch_path,
            "boardFQBN": board,
            "output": result.output,
            "warnings": list(result.warnings),
        }

    async def upload_sketch(self, arguments: dict[str, Any]) -> dict[str, Any]:
        sketch_path = self.env.resolve_sketch_path(arguments)
        board = self.env.resolve_board(arguments)
        port = self.env.resolve_port(arguments)
        compiler = self.env.require_compiler()

        # Upload needs exclusive access to the port
        transport = self.env.transport
        if transport is not None and transport.is_connected:
            logger.info("Disconnecting serial monitor before upload")
            await transport.disconnect()

        await self._save_editor(ToolName.UPLOAD_SKETCH, sketch_path)

        logger.info(f"Uploading {sketch_path} to {board} on {port}")
        try:
            result = await compiler.upload(sketch_path, board, port)
        except CollaboratorError:
            raise
        except Exception as e:
            raise self._failure(ToolName.UPLOAD_SKETCH, str(e), sketch_path, board, port, cause=e)

        if not result.success:
            raise self._failure(ToolName.UPLOAD_SKETCH, result.output, sketch_path, board, port)

        return {
            "success": True,
            "sketchPath": sketch_path,
            "boardFQBN": board,
            "port": port,
            "output": result.output,
            "message": "Upload complete",
        }

    async def list_boards(self, arguments: dict[str, Any]) -> dict[str, Any]:
        boards = await self.env.require_compiler().list_boards()
        return {"boards": boards}

    async def list_ports(self, arguments: dict[str, Any]) -> dict[str, Any]:
        ports = await self.env.require_compiler().list_ports()
        return {"ports": ports}

    async def _save_editor(self, tool: ToolName, sketch_path: str) -> None:
        if self.env.editor is None:
            return
        try:
            await self.env.editor.save(sketch_path)
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(
                f"Failed to save {sketch_path}: {e}",
                output=str(e) or None,
                cause=e,
                details={"tool": tool.value, "sketchPath": sketch_path},
            )

    def _failure(
        self,
        tool: ToolName,
        output: str,
        sketch_path: str,
        board: str,
        port: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> CollaboratorError:
        """Build the CollaboratorError for a failed compile or upload.

        The executor records the output in the error memory.
        """
        output = output or f"{tool.value} failed without output"
        details = {"tool": tool.value, "sketchPath": sketch_path, "boardFQBN": board}
        if port:
            details["port"] = port

        return CollaboratorError(output, output=output, cause=cause, details=details)
