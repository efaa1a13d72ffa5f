"""
Editor tools: read, rewrite, edit, search and save the open sketch,
plus a summary of the current IDE state.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable

from ..domain.exceptions import CollaboratorError, ToolValidationError
from .definitions import STANDARD_BAUD_RATES, ToolName
from .environment import ToolEnvironment

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]

MAX_SEARCH_MATCHES = 50
EDIT_OPERATIONS = ("replace", "insert", "delete")


def _line_number(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ToolValidationError(f"{name} must be a line number, got {value!r}")
    if number < 1:
        raise ToolValidationError(f"{name} must be 1 or greater, got {number}")
    return number


class EditorTools:
    """Handlers for the editor tools and get_current_state."""

    def __init__(self, env: ToolEnvironment):
        self.env = env

    def handlers(self) -> dict[ToolName, ToolHandler]:
        return {
            ToolName.GET_EDITOR_CODE: self.get_editor_code,
            ToolName.SET_EDITOR_CODE: self.set_editor_code,
            ToolName.EDIT_CODE: self.edit_code,
            ToolName.SEARCH_CODE: self.search_code,
            ToolName.REPLACE_IN_CODE: self.replace_in_code,
            ToolName.GET_CURRENT_SKETCH_PATH: self.get_current_sketch_path,
            ToolName.SAVE_SKETCH: self.save_sketch,
            ToolName.GET_CURRENT_STATE: self.get_current_state,
        }

    async def get_editor_code(self, arguments: dict[str, Any]) -> dict[str, Any]:
        code = await self.env.require_editor().get_code()
        return {"code": code, "lineCount": len(code.split("\n"))}

    async def set_editor_code(self, arguments: dict[str, Any]) -> dict[str, Any]:
        code = arguments["code"]
        await self.env.require_editor().set_code(code)
        return {"lineCount": len(code.split("\n"))}

    async def edit_code(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Replace, insert or delete 1-indexed lines.

        endLine is inclusive and defaults to startLine; insert places
        newCode before startLine (startLine = line count + 1 appends).
        """
        operation = arguments["operation"]
        if operation not in EDIT_OPERATIONS:
            raise ToolValidationError(
                f"Unknown operation: {operation}. Use one of: {', '.join(EDIT_OPERATIONS)}",
                tool=ToolName.EDIT_CODE.value,
            )

        editor = self.env.require_editor()
        lines = (await editor.get_code()).split("\n")

        start_line = _line_number(arguments["startLine"], "startLine")
        end_line = start_line
        if arguments.get("endLine") is not None and operation != "insert":
            end_line = _line_number(arguments["endLine"], "endLine")
        if end_line < start_line:
            raise ToolValidationError(
                f"endLine ({end_line}) must not be before startLine ({start_line})"
            )

        max_start = len(lines) + 1 if operation == "insert" else len(lines)
        if start_line > max_start:
            raise ToolValidationError(
                f"startLine {start_line} is out of range (the code has {len(lines)} lines)"
            )

        new_code = arguments.get("newCode") or ""
        new_lines = new_code.split("\n") if new_code else []
        start = start_line - 1
        end = min(end_line, len(lines))

        if operation == "replace":
            result_lines = lines[:start] + new_lines + lines[end:]
            affected = end - start
        elif operation == "insert":
            result_lines = lines[:start] + new_lines + lines[start:]
            affected = len(new_lines)
        else:
            result_lines = lines[:start] + lines[end:]
            affected = end - start

        await editor.set_code("\n".join(result_lines))
        logger.debug(f"edit_code {operation} at line {start_line}: {affected} lines affected")

        return {
            "operation": operation,
            "linesAffected": affected,
            "newLineCount": len(result_lines),
        }

    async def search_code(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Case-insensitive search, plain text or regex."""
        search_text = arguments["searchText"]
        if not search_text:
            raise ToolValidationError("searchText must not be empty")

        if arguments.get("isRegex"):
            try:
                pattern = re.compile(search_text, re.IGNORECASE)
            except re.error as e:
                raise ToolValidationError(f"Invalid regular expression: {e}")
        else:
            pattern = re.compile(re.escape(search_text), re.IGNORECASE)

        code = await self.env.require_editor().get_code()
        matches = [
            {"lineNumber": number, "content": line.strip()}
            for number, line in enumerate(code.split("\n"), start=1)
            if pattern.search(line)
        ]

        return {
            "searchText": search_text,
            "matchCount": len(matches),
            "matches": matches[:MAX_SEARCH_MATCHES],
        }

    async def replace_in_code(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Literal find/replace, first occurrence unless replaceAll."""
        search_text = arguments["searchText"]
        replace_text = arguments["replaceText"]
        if not search_text:
            raise ToolValidationError("searchText must not be empty")

        editor = self.env.require_editor()
        code = await editor.get_code()

        if arguments.get("replaceAll"):
            count = code.count(search_text)
            new_code = code.replace(search_text, replace_text)
        else:
            count = 1 if search_text in code else 0
            new_code = code.replace(search_text, replace_text, 1)

        if count:
            await editor.set_code(new_code)

        return {
            "searchText": search_text,
            "replaceText": replace_text,
            "replacementCount": count,
        }

    async def get_current_sketch_path(self, arguments: dict[str, Any]) -> dict[str, Any]:
        path = self.env.require_editor().get_current_path()
        return {"path": path}

    async def save_sketch(self, arguments: dict[str, Any]) -> dict[str, Any]:
        editor = self.env.require_editor()
        path = arguments.get("path") or None
        try:
            await editor.save(path)
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(
                f"Failed to save sketch: {e}",
                output=str(e) or None,
                cause=e,
                details={"tool": ToolName.SAVE_SKETCH.value, "path": path},
            )
        return {"path": path or editor.get_current_path()}

    async def get_current_state(self, arguments: dict[str, Any]) -> dict[str, Any]:
        snapshot = self.env.snapshot()
        transport = self.env.transport
        return {
            "currentSketchPath": snapshot.sketch_path,
            "hasFileOpen": snapshot.has_file_open,
            "selectedBoard": snapshot.selected_board,
            "selectedPort": snapshot.selected_port,
            "currentBaudRate": snapshot.baud_rate,
            "serialConnected": transport.is_connected if transport is not None else False,
            "currentSerialBaudRate": transport.current_baud_rate if transport is not None else None,
            "serialBufferSize": len(self.env.serial_buffer),
            "availableBaudRates": list(STANDARD_BAUD_RATES),
        }
