"""
Collaborators shared by the tool handler groups.

Resolves missing tool arguments from the IDE snapshot and turns absent
collaborators or selections into actionable ToolEnvironmentErrors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..domain.entities import EnvironmentSnapshot
from ..domain.exceptions import ToolEnvironmentError
from ..domain.ports import ICompilerService, IEditorState, IMemoryStore, ISerialTransport
from ..ring_buffer import RingBuffer

logger = logging.getLogger(__name__)

DEFAULT_SERIAL_BUFFER_SIZE = 1000

NO_SKETCH_MESSAGE = "No sketch open. Please open a .ino file first (Open Sketch in the sidebar)."
NO_BOARD_MESSAGE = "No board selected. Please select a board from the Board dropdown in the sidebar."
NO_PORT_MESSAGE = (
    "No port selected. Please select a port from the Port dropdown "
    "(and connect your board via USB)."
)


@dataclass
class ToolEnvironment:
    """Everything a tool handler may touch.

    Attributes:
        memory: Error memory store
        compiler: Compiler/uploader (None when running without hardware)
        transport: Serial transport (None when running without hardware)
        editor: Editor/IDE state (None outside an IDE)
        serial_buffer: Recent serial data, oldest first
    """

    memory: IMemoryStore
    compiler: Optional[ICompilerService] = None
    transport: Optional[ISerialTransport] = None
    editor: Optional[IEditorState] = None
    serial_buffer: RingBuffer = field(
        default_factory=lambda: RingBuffer(DEFAULT_SERIAL_BUFFER_SIZE)
    )

    def snapshot(self) -> EnvironmentSnapshot:
        if self.editor is None:
            return EnvironmentSnapshot()
        return self.editor.snapshot()

    def require_compiler(self) -> ICompilerService:
        if self.compiler is None:
            raise ToolEnvironmentError(
                "Arduino CLI is not available. Compile and upload need the IDE's compiler service."
            )
        return self.compiler

    def require_transport(self) -> ISerialTransport:
        if self.transport is None:
            raise ToolEnvironmentError(
                "Serial monitor is not available. Serial tools need the IDE's serial connection."
            )
        return self.transport

    def require_editor(self) -> IEditorState:
        if self.editor is None:
            raise ToolEnvironmentError(
                "Code editor is not available. Open the sketch in the IDE editor first."
            )
        return self.editor

    def resolve_sketch_path(self, arguments: dict[str, Any]) -> str:
        """Explicit sketchPath, else the open sketch."""
        sketch_path = _clean(arguments.get("sketchPath")) or _clean(self.snapshot().sketch_path)
        if not sketch_path:
            raise ToolEnvironmentError(NO_SKETCH_MESSAGE)
        return sketch_path

    def resolve_board(self, arguments: dict[str, Any]) -> str:
        """Explicit boardFQBN, else the selected board."""
        board = _clean(arguments.get("boardFQBN")) or _clean(self.snapshot().selected_board)
        if not board:
            raise ToolEnvironmentError(NO_BOARD_MESSAGE)
        return board

    def resolve_port(self, arguments: dict[str, Any]) -> str:
        """Explicit port, else the selected port."""
        port = _clean(arguments.get("port")) or _clean(self.snapshot().selected_port)
        if not port:
            raise ToolEnvironmentError(NO_PORT_MESSAGE)
        return port


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
