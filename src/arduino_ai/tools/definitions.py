"""
Tool catalog.

The closed set of tools the agent may call. Every ToolName must have a
handler in the tool executor; the catalog below is the single source
of truth for names, descriptions and required parameters.
"""

from __future__ import annotations

from enum import Enum

from ..domain.entities import ToolDefinition


class ToolName(str, Enum):
    """Names of every tool in the catalog."""

    # Sketch / board
    COMPILE_SKETCH = "compile_sketch"
    UPLOAD_SKETCH = "upload_sketch"
    LIST_BOARDS = "list_boards"
    LIST_PORTS = "list_ports"

    # Serial monitor
    CONNECT_SERIAL = "connect_serial"
    DISCONNECT_SERIAL = "disconnect_serial"
    SEND_SERIAL = "send_serial"
    READ_SERIAL = "read_serial"
    AUTO_DETECT_BAUD = "auto_detect_baud"
    GET_BAUD_RATE = "get_baud_rate"
    SET_BAUD_RATE = "set_baud_rate"
    GET_AVAILABLE_BAUD_RATES = "get_available_baud_rates"

    # Editor
    GET_EDITOR_CODE = "get_editor_code"
    SET_EDITOR_CODE = "set_editor_code"
    EDIT_CODE = "edit_code"
    SEARCH_CODE = "search_code"
    REPLACE_IN_CODE = "replace_in_code"
    GET_CURRENT_SKETCH_PATH = "get_current_sketch_path"
    SAVE_SKETCH = "save_sketch"

    # Analysis / memory
    ANALYZE_ERROR = "analyze_error"
    SEARCH_MEMORY = "search_memory"
    RECORD_FIX = "record_fix"

    # State
    GET_CURRENT_STATE = "get_current_state"


DEBUG_TOOL_NAMES = (
    ToolName.ANALYZE_ERROR,
    ToolName.SEARCH_MEMORY,
    ToolName.RECORD_FIX,
)

STANDARD_BAUD_RATES = (
    300,
    1200,
    2400,
    4800,
    9600,
    19200,
    38400,
    57600,
    74880,
    115200,
    230400,
    250000,
    500000,
    1000000,
    2000000,
)

DEFAULT_BAUD_RATE = 115200
DEFAULT_READ_LINES = 50
DEFAULT_SEARCH_LIMIT = 10

def _no_parameters() -> dict:
    return {"type": "object", "properties": {}}


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    # ---------------------------------------------------------------
    # Sketch / board
    # ---------------------------------------------------------------
    ToolDefinition(
        name=ToolName.COMPILE_SKETCH.value,
        description=(
            "Compile an Arduino sketch using Arduino CLI. If sketchPath or boardFQBN "
            "are omitted, uses the currently open sketch and selected board from the IDE."
        ),
        parameters={
            "type": "object",
            "properties": {
                "sketchPath": {
                    "type": "string",
                    "description": "Full path to the .ino sketch file. Optional: uses currently open sketch if omitted.",
                },
                "boardFQBN": {
                    "type": "string",
                    "description": "Fully Qualified Board Name (e.g., arduino:avr:uno). Optional: uses selected board if omitted.",
                },
            },
            "required": [],
        },
    ),
    ToolDefinition(
        name=ToolName.UPLOAD_SKETCH.value,
        description=(
            "Upload compiled code to an Arduino board. If sketchPath, boardFQBN, or port "
            "are omitted, uses the currently open sketch, selected board, and selected "
            "port from the IDE."
        ),
        parameters={
            "type": "object",
            "properties": {
                "sketchPath": {
                    "type": "string",
                    "description": "Full path to the .ino sketch file. Optional: uses currently open sketch if omitted.",
                },
                "boardFQBN": {
                    "type": "string",
                    "description": "Fully Qualified Board Name. Optional: uses selected board if omitted.",
                },
                "port": {
                    "type": "string",
                    "description": "Serial port (e.g., COM3, /dev/ttyUSB0). Optional: uses selected port if omitted.",
                },
            },
            "required": [],
        },
    ),
    ToolDefinition(
        name=ToolName.LIST_BOARDS.value,
        description="List all available Arduino boards",
        parameters=_no_parameters(),
    ),
    ToolDefinition(
        name=ToolName.LIST_PORTS.value,
        description="List all available serial ports",
        parameters=_no_parameters(),
    ),
    # ---------------------------------------------------------------
    # Serial monitor
    # ---------------------------------------------------------------
    ToolDefinition(
        name=ToolName.CONNECT_SERIAL.value,
        description="Connect to a serial port for monitoring",
        parameters={
            "type": "object",
            "properties": {
                "port": {"type": "string", "description": "Serial port path"},
                "baudRate": {
                    "type": "number",
                    "description": "Baud rate (common: 9600, 115200)",
                    "default": DEFAULT_BAUD_RATE,
                },
            },
            "required": ["port"],
        },
    ),
    ToolDefinition(
        name=ToolName.DISCONNECT_SERIAL.value,
        description="Disconnect from serial port",
        parameters=_no_parameters(),
    ),
    ToolDefinition(
        name=ToolName.SEND_SERIAL.value,
        description="Send data to the connected serial port",
        parameters={
            "type": "object",
            "properties": {
                "data": {"type": "string", "description": "Data to send"},
            },
            "required": ["data"],
        },
    ),
    ToolDefinition(
        name=ToolName.READ_SERIAL.value,
        description="Read recent serial monitor output",
        parameters={
            "type": "object",
            "properties": {
                "lines": {
                    "type": "number",
                    "description": "Number of recent lines to read",
                    "default": DEFAULT_READ_LINES,
                },
            },
        },
    ),
    ToolDefinition(
        name=ToolName.AUTO_DETECT_BAUD.value,
        description="Automatically detect the correct baud rate for a serial port",
        parameters={
            "type": "object",
            "properties": {
                "port": {"type": "string", "description": "Serial port path"},
            },
            "required": ["port"],
        },
    ),
    ToolDefinition(
        name=ToolName.GET_BAUD_RATE.value,
        description="Get the current baud rate setting for serial communication",
        parameters=_no_parameters(),
    ),
    ToolDefinition(
        name=ToolName.SET_BAUD_RATE.value,
        description=(
            "Set the baud rate for serial communication. Common rates: "
            + ", ".join(str(rate) for rate in STANDARD_BAUD_RATES)
        ),
        parameters={
            "type": "object",
            "properties": {
                "baudRate": {
                    "type": "number",
                    "description": "The baud rate to set (e.g., 9600, 115200)",
                },
            },
            "required": ["baudRate"],
        },
    ),
    ToolDefinition(
        name=ToolName.GET_AVAILABLE_BAUD_RATES.value,
        description="Get list of all available baud rate options",
        parameters=_no_parameters(),
    ),
    # ---------------------------------------------------------------
    # Editor
    # ---------------------------------------------------------------
    ToolDefinition(
        name=ToolName.GET_EDITOR_CODE.value,
        description="Get the current code content from the editor",
        parameters=_no_parameters(),
    ),
    ToolDefinition(
        name=ToolName.SET_EDITOR_CODE.value,
        description="Replace the entire code content in the editor",
        parameters={
            "type": "object",
            "properties": {
                "code": {"type": "string", "description": "The new code to set in the editor"},
            },
            "required": ["code"],
        },
    ),
    ToolDefinition(
        name=ToolName.EDIT_CODE.value,
        description=(
            "Edit specific lines or sections of code in the editor. "
            "Can insert, replace, or delete code."
        ),
        parameters={
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "description": 'Operation type: "replace", "insert", or "delete"',
                    "enum": ["replace", "insert", "delete"],
                },
                "startLine": {
                    "type": "number",
                    "description": "Starting line number (1-indexed)",
                },
                "endLine": {
                    "type": "number",
                    "description": "Ending line number (1-indexed, inclusive). For insert, this is ignored.",
                },
                "newCode": {
                    "type": "string",
                    "description": "New code to insert or replace with. Not needed for delete.",
                },
            },
            "required": ["operation", "startLine"],
        },
    ),
    ToolDefinition(
        name=ToolName.SEARCH_CODE.value,
        description="Search for text or patterns in the current editor code",
        parameters={
            "type": "object",
            "properties": {
                "searchText": {
                    "type": "string",
                    "description": "Text or regex pattern to search for",
                },
                "isRegex": {
                    "type": "boolean",
                    "description": "Whether to treat searchText as a regex pattern",
                    "default": False,
                },
            },
            "required": ["searchText"],
        },
    ),
    ToolDefinition(
        name=ToolName.REPLACE_IN_CODE.value,
        description="Find and replace text in the editor code",
        parameters={
            "type": "object",
            "properties": {
                "searchText": {"type": "string", "description": "Text to find"},
                "replaceText": {"type": "string", "description": "Text to replace with"},
                "replaceAll": {
                    "type": "boolean",
                    "description": "Replace all occurrences or just the first",
                    "default": False,
                },
            },
            "required": ["searchText", "replaceText"],
        },
    ),
    ToolDefinition(
        name=ToolName.GET_CURRENT_SKETCH_PATH.value,
        description="Get the file path of the currently open sketch",
        parameters=_no_parameters(),
    ),
    ToolDefinition(
        name=ToolName.SAVE_SKETCH.value,
        description="Save the current editor content to the sketch file",
        parameters={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Optional file path. If not provided, saves to current sketch path.",
                },
            },
        },
    ),
    # ---------------------------------------------------------------
    # Analysis / memory
    # ---------------------------------------------------------------
    ToolDefinition(
        name=ToolName.ANALYZE_ERROR.value,
        description="Analyze an error message against the error memory and record it",
        parameters={
            "type": "object",
            "properties": {
                "errorMessage": {
                    "type": "string",
                    "description": "The error message to analyze",
                },
                "context": {
                    "type": "object",
                    "description": "Additional context (sketch path, board type, etc.)",
                },
            },
            "required": ["errorMessage"],
        },
    ),
    ToolDefinition(
        name=ToolName.SEARCH_MEMORY.value,
        description="Search the error memory database for similar past errors",
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Error message or pattern to search for",
                },
                "limit": {
                    "type": "number",
                    "description": "Maximum number of results",
                    "default": DEFAULT_SEARCH_LIMIT,
                },
            },
            "required": ["query"],
        },
    ),
    ToolDefinition(
        name=ToolName.RECORD_FIX.value,
        description="Record a successful fix to the memory database",
        parameters={
            "type": "object",
            "properties": {
                "errorSignature": {
                    "type": "string",
                    "description": "Signature hash or the error message text",
                },
                "fix": {
                    "type": "string",
                    "description": "The fix that resolved the error",
                },
                "code": {
                    "type": "string",
                    "description": "Optional code snippet that implements the fix",
                },
                "context": {
                    "type": "object",
                    "description": "Additional context (board, sketch, etc.)",
                },
            },
            "required": ["errorSignature", "fix"],
        },
    ),
    # ---------------------------------------------------------------
    # State
    # ---------------------------------------------------------------
    ToolDefinition(
        name=ToolName.GET_CURRENT_STATE.value,
        description=(
            "Get the current application state including selected board, port, baud "
            "rate, serial connection status, and open sketch path"
        ),
        parameters=_no_parameters(),
    ),
)
