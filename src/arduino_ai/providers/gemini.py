"""
Google Gemini LLM Provider.

Implements the ILLMProvider interface against the Generative Language
REST API (`models/{model}:generateContent`) using httpx.

Gemini differs from the other vendors in three ways: the system prompt
is a `systemInstruction`, function calls carry no id (one is
synthesized) and function results are correlated by function name.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..domain.entities import (
    ChatResponse,
    ErrorType,
    Message,
    MessageRole,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from ..domain.exceptions import ProviderError
from .base import BaseLLMProvider, LLMProviderConfig

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring httpx if not used
try:
    import httpx

    HTTPX_AVAILABLE = True
except ImportError:
    HTTPX_AVAILABLE = False
    httpx = None

MIN_GEMINI_KEY_LENGTH = 30


class GeminiProvider(BaseLLMProvider):
    """Google Gemini provider implementation.

    Usage:
        config = LLMProviderConfig(api_key="AIza...", model="gemini-1.5-flash")
        provider = GeminiProvider(config)

        response = await provider.chat(messages, tools)
    """

    PROVIDER_NAME = "gemini"
    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    AVAILABLE_MODELS = (
        "gemini-1.5-flash",
        "gemini-1.5-flash-latest",
        "gemini-1.5-pro",
        "gemini-1.5-pro-latest",
        "gemini-2.0-flash-exp",
    )
    API_KEY_HINT = "Get one from https://aistudio.google.com/apikey"

    def __init__(self, config: LLMProviderConfig, client: Any = None):
        """Initialize the Gemini provider.

        Args:
            config: Provider configuration
            client: Pre-built httpx.AsyncClient (tests pass a MockTransport client)

        Raises:
            ImportError: If httpx package is not installed
            InvalidAPIKeyError: If the key is too short to be a Gemini key
        """
        if client is None and not HTTPX_AVAILABLE:
            raise ImportError(
                "httpx package is required for GeminiProvider. "
                "Install with: pip install httpx"
            )

        super().__init__(config)

        self.base_url = self.config.base_url or self.DEFAULT_BASE_URL
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout,
        )

    @classmethod
    def validate_api_key(cls, api_key: Optional[str]) -> bool:
        return super().validate_api_key(api_key) and len(api_key) >= MIN_GEMINI_KEY_LENGTH

    def format_messages(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> tuple[Optional[dict[str, Any]], list[dict[str, Any]]]:
        """Convert messages to Gemini `contents`.

        Returns:
            Tuple of (systemInstruction or None, contents)
        """
        system_parts = []
        if system_prompt:
            system_parts.append(system_prompt)

        contents: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                if msg.content:
                    system_parts.insert(0, msg.content)
            elif msg.role == MessageRole.TOOL:
                function_response = {
                    "name": msg.name,
                    "response": self._function_response(msg.content),
                }
                if self._is_vendor_id(msg.tool_call_id):
                    function_response["id"] = msg.tool_call_id
                self._append_parts(contents, "user", [{"functionResponse": function_response}])
            elif msg.role == MessageRole.ASSISTANT:
                parts: list[dict[str, Any]] = []
                if msg.content:
                    parts.append({"text": msg.content})
                for tc in msg.tool_calls or []:
                    function_call = {"name": tc.name, "args": tc.arguments}
                    if self._is_vendor_id(tc.id):
                        function_call["id"] = tc.id
                    parts.append({"functionCall": function_call})
                self._append_parts(contents, "model", parts)
            elif msg.content:
                self._append_parts(contents, "user", [{"text": msg.content}])

        system_instruction = None
        if system_parts:
            system_instruction = {"parts": [{"text": "\n\n".join(system_parts)}]}

        return system_instruction, contents

    def _is_vendor_id(self, call_id: Optional[str]) -> bool:
        """Synthetic ids minted by parse_tool_calls are never sent back."""
        return bool(call_id) and not call_id.startswith(f"{self.PROVIDER_NAME}_")

    @staticmethod
    def _append_parts(
        contents: list[dict[str, Any]], role: str, parts: list[dict[str, Any]]
    ) -> None:
        if not parts:
            return
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].extend(parts)
        else:
            contents.append({"role": role, "parts": list(parts)})

    @staticmethod
    def _function_response(content: Optional[str]) -> dict[str, Any]:
        """functionResponse.response must be a JSON object."""
        if not content:
            return {}
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            return {"result": content}
        return parsed if isinstance(parsed, dict) else {"result": parsed}

    def format_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tools to a single Gemini `functionDeclarations` entry."""
        return [{"functionDeclarations": [tool.to_gemini_format() for tool in tools]}]

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        """Extract functionCall parts from a generateContent response body."""
        tool_calls = []
        for candidate in raw_response.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                function_call = part.get("functionCall")
                if function_call:
                    tool_calls.append(
                        ToolCall(
                            id=function_call.get("id") or self._synthetic_tool_call_id(),
                            name=function_call.get("name", ""),
                            arguments=self._parse_arguments(function_call.get("args")),
                        )
                    )
        return tool_calls

    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        """Generate a response using Gemini.

        Raises:
            ProviderError: On HTTP, transport or content-blocking failures
        """
        system_instruction, contents = self.format_messages(messages, system_prompt)

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens or self.config.max_tokens,
            },
        }

        if system_instruction:
            payload["systemInstruction"] = system_instruction

        if tools:
            payload["tools"] = self.format_tools(tools)

        try:
            response = await self.client.post(
                f"/models/{self.config.model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.config.api_key},
            )
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            raise self._status_error(e)

        except httpx.TimeoutException as e:
            error_msg = f"Gemini request timeout: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg, provider=self.name, error_type=ErrorType.TIMEOUT, cause=e
            )

        except httpx.RequestError as e:
            error_msg = f"Gemini connection error: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg, provider=self.name, error_type=ErrorType.RECOVERABLE, cause=e
            )

        except ValueError as e:
            error_msg = f"Gemini returned an unreadable response: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg, provider=self.name, error_type=ErrorType.RECOVERABLE, cause=e
            )

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            error_msg = (
                f"Gemini blocked the prompt: {block_reason}"
                if block_reason
                else "Gemini returned no candidates"
            )
            logger.error(error_msg)
            raise ProviderError(error_msg, provider=self.name, error_type=ErrorType.FATAL)

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part["text"] for part in parts if part.get("text"))

        metadata = data.get("usageMetadata") or {}
        usage = TokenUsage(
            input_tokens=metadata.get("promptTokenCount", 0),
            output_tokens=metadata.get("candidatesTokenCount", 0),
        )

        return ChatResponse(
            content=text,
            tool_calls=self.parse_tool_calls(data),
            usage=usage,
            model=data.get("modelVersion") or self.config.model,
            provider=self.name,
        )

    def _status_error(self, error: Any) -> ProviderError:
        """Map an HTTP status failure onto a typed ProviderError."""
        status = error.response.status_code
        body = error.response.text
        if status in (401, 403) or "API_KEY_INVALID" in body or "API key not valid" in body:
            error_type = ErrorType.AUTH
            message = f"Invalid Gemini API key. {self.API_KEY_HINT}"
        elif status == 429:
            error_type = ErrorType.RATE_LIMIT
            message = "Gemini API quota exceeded. Please wait and try again."
        elif status == 404:
            error_type = ErrorType.FATAL
            message = f'Model "{self.config.model}" not available: {body}'
        elif status >= 500:
            error_type = ErrorType.RECOVERABLE
            message = f"Gemini API error: {status} - {body}"
        else:
            error_type = ErrorType.FATAL
            message = f"Gemini API error: {status} - {body}"

        logger.error(message)
        return ProviderError(message, provider=self.name, error_type=error_type, cause=error)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
