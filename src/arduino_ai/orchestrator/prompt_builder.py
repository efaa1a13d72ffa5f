"""
Prompt Builder for Agent Orchestrator.

Encapsulates system prompt construction:
- Selecting the base prompt for the agent mode
- Rendering the error and serial analysis requests
- Adding error memory hints to prompts
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..domain.entities import AgentMode, FuzzyMatch

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an expert Arduino/IoT development assistant integrated into an IDE. Your role is to help users write, compile, upload, and debug Arduino sketches.

## Your Capabilities

### Code Editor Operations
- **get_editor_code**: Read the current code from the editor
- **set_editor_code**: Replace the entire code in the editor
- **edit_code**: Edit specific lines (replace, insert, or delete operations)
- **search_code**: Search for text or patterns in the code
- **replace_in_code**: Find and replace text in the code
- **get_current_sketch_path**: Get the path of the open sketch
- **save_sketch**: Save the current sketch to file

### Arduino Operations
- **compile_sketch**: Compile the current sketch. You can omit sketchPath and boardFQBN to use the open file and selected board from the IDE.
- **upload_sketch**: Upload to the board. You can omit sketchPath, boardFQBN, and port to use the IDE's current sketch, board, and port.
- **list_boards**: List available Arduino boards
- **list_ports**: List available serial ports

### Serial Monitor Operations
- **connect_serial**: Connect to a serial port
- **disconnect_serial**: Disconnect from serial port
- **send_serial**: Send data to the connected serial port
- **read_serial**: Read recent serial monitor output
- **get_baud_rate**: Get the current baud rate setting
- **set_baud_rate**: Change the baud rate (common rates: 9600, 115200)
- **get_available_baud_rates**: List all available baud rate options
- **auto_detect_baud**: Try to automatically detect the correct baud rate

### Analysis & Memory
- **analyze_error**: Analyze error messages and suggest fixes
- **search_memory**: Search the database for similar past errors
- **record_fix**: Record successful fixes for future reference
- **get_current_state**: Get the current application state (board, port, baud rate, etc.)

## Guidelines

1. **Check File Status First**: If the IDE context shows "NO_FILE_OPEN", tell the user to open a .ino sketch before you edit, compile, or upload. You can still answer general Arduino questions.

2. **Be Proactive**: When the user asks about their code, read it first using get_editor_code before giving advice.

3. **Edit Code Directly**: When fixing bugs or adding features, make the changes with the code editing tools instead of only describing them.

4. **Check Context First**: Use get_current_state to understand the current setup before suggesting actions.

5. **Serial Monitor**: When debugging, read the serial output and adjust the baud rate if the output looks garbled.

6. **Memory First**: Check the memory database for similar past errors before suggesting new solutions, and record fixes that worked.

7. **Explain Changes**: Say what you are doing. If you change code, explain what you changed.

8. **Common Baud Rates**:
   - 9600 (most common default)
   - 115200 (fast, often used by ESP boards)
   - 74880 (ESP8266 boot messages)

9. **Be Concise**: Provide clear, actionable advice."""

ASK_PROMPT = (
    "You are a helpful Arduino and IoT development expert. Answer questions about "
    "Arduino programming, hardware, libraries, and best practices. You do NOT have "
    "access to the user's code or IDE tools, so provide clear, accurate advice and "
    "code examples in your responses. Be concise and practical."
)

DEBUG_PROMPT = """You are an Arduino debugging specialist. Your role is to analyze errors, suggest fixes, and help troubleshoot compilation, upload, and runtime issues. You have access to:
- **analyze_error**: Analyze error messages and suggest fixes
- **search_memory**: Search the database for similar past errors and solutions
- **record_fix**: Record successful fixes for future reference

Always check memory for similar errors first. Provide structured, step-by-step solutions. Focus on root cause and prevention. Be concise."""

ERROR_ANALYSIS_PROMPT = """Analyze the following error and provide a structured response:

1. Error Type: Classify the error (compilation, upload, runtime, hardware, etc.)
2. Root Cause: Identify the likely cause
3. Solution Steps: Provide step-by-step fix instructions
4. Prevention: Suggest how to avoid this error in the future

Error: {error_message}
Context: {context}"""

SERIAL_ANALYSIS_PROMPT = """Analyze the following serial monitor output and provide insights:

1. What is the board doing?
2. Are there any error patterns?
3. What should the user check?
4. Suggest next steps

Serial Output:
{serial_output}"""

MODE_PROMPTS = {
    AgentMode.ASK: ASK_PROMPT,
    AgentMode.DEBUG: DEBUG_PROMPT,
    AgentMode.AGENT: SYSTEM_PROMPT,
}


class PromptBuilder:
    """Manages prompt construction for the agent.

    Usage:
        prompt_builder = PromptBuilder()

        system_prompt = prompt_builder.build(AgentMode.DEBUG)
        request = prompt_builder.error_analysis(
            error_message,
            context={"board": "arduino:avr:uno"},
            fuzzy_matches=similar.fuzzy_matches,
        )
    """

    def __init__(
        self,
        max_hints: int = 3,
        overrides: Optional[dict[AgentMode, str]] = None,
    ):
        """Initialize the prompt builder.

        Args:
            max_hints: Maximum number of memory hints appended to a request
            overrides: Replacement base prompts per mode
        """
        self.max_hints = max_hints
        self._prompts = dict(MODE_PROMPTS)
        if overrides:
            self._prompts.update(overrides)

    def build(self, mode: AgentMode | str, extra_context: Optional[str] = None) -> str:
        """Build the system prompt for a mode.

        Args:
            mode: Agent mode (ask, debug or agent)
            extra_context: Additional section appended to the base prompt

        Returns:
            Complete system prompt
        """
        prompt = self._prompts[AgentMode(mode)]
        if extra_context:
            prompt += f"\n\n## Additional Context\n{extra_context}"
        return prompt

    def error_analysis(
        self,
        error_message: str,
        context: Optional[dict[str, Any]] = None,
        fuzzy_matches: Optional[list[FuzzyMatch]] = None,
    ) -> str:
        """Render the error analysis request, with memory hints appended."""
        prompt = ERROR_ANALYSIS_PROMPT.format(
            error_message=error_message,
            context=json.dumps(context or {}, indent=2, default=str),
        )
        hints = self.format_memory_hints(fuzzy_matches or [])
        if hints:
            prompt += f"\n\n{hints}"
        return prompt

    def serial_analysis(self, serial_output: str) -> str:
        return SERIAL_ANALYSIS_PROMPT.format(serial_output=serial_output)

    def format_memory_hints(self, fuzzy_matches: list[FuzzyMatch]) -> str:
        """Format weak memory matches as hints for the model.

        Returns an empty string when there is nothing to add.
        """
        if not fuzzy_matches:
            return ""

        lines = ["## Similar Past Errors (may not apply)"]
        for match in fuzzy_matches[: self.max_hints]:
            lines.append(
                f"- {match.error.raw_pattern[:200]} "
                f"(confidence {match.confidence:.1f}, seen {match.error.occurrence_count}x)"
            )
            for fix_match in match.fixes:
                lines.append(
                    f"  - Fix that worked {fix_match.success_count}x: {fix_match.fix.description}"
                )
        return "\n".join(lines)
