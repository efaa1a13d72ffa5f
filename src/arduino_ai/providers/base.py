"""
Base LLM Provider Implementation.

Provides common functionality for all LLM providers: configuration,
credential format checks, argument decoding and synthetic tool-call ids.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from ..domain.entities import ChatResponse, Message, ToolCall, ToolDefinition
from ..domain.exceptions import InvalidAPIKeyError
from ..domain.ports import ILLMProvider

logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 10


@dataclass
class LLMProviderConfig:
    """Configuration for LLM providers.

    Attributes:
        api_key: API key for the provider (None for local providers)
        model: Model name to use (provider default when None)
        base_url: Optional custom base URL
        timeout: Request timeout in seconds
        max_retries: Maximum retry attempts performed by the vendor SDK
        temperature: Default temperature
        max_tokens: Default max tokens
    """

    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0
    max_retries: int = 2
    temperature: float = 0.7
    max_tokens: int = 2000
    extra: dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ILLMProvider, ABC):
    """Base class for LLM provider implementations.

    Subclasses set PROVIDER_NAME, DEFAULT_MODEL and AVAILABLE_MODELS and
    implement the vendor translation methods. The credential is checked
    in the constructor so a bad key fails before the first request.
    """

    PROVIDER_NAME = "base"
    DEFAULT_MODEL = ""
    AVAILABLE_MODELS: tuple[str, ...] = ()
    REQUIRES_API_KEY = True
    API_KEY_HINT = ""

    def __init__(self, config: LLMProviderConfig):
        """Initialize the provider.

        Args:
            config: Provider configuration

        Raises:
            InvalidAPIKeyError: If the key fails the vendor format check
        """
        if self.REQUIRES_API_KEY and not self.validate_api_key(config.api_key):
            message = f"Invalid {self.PROVIDER_NAME} API key format."
            if self.API_KEY_HINT:
                message = f"{message} {self.API_KEY_HINT}"
            raise InvalidAPIKeyError(message, provider=self.PROVIDER_NAME)

        if not config.model:
            config = replace(config, model=self.DEFAULT_MODEL)
        self.config = config

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self.config.model

    def available_models(self) -> list[str]:
        return list(self.AVAILABLE_MODELS)

    @classmethod
    def validate_api_key(cls, api_key: Optional[str]) -> bool:
        """Check the credential format (not its validity with the vendor).

        Subclasses extend this with their own prefix or length rules.
        """
        return bool(api_key) and len(api_key.strip()) >= MIN_API_KEY_LENGTH

    @abstractmethod
    def format_messages(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> Any:
        """Convert domain messages to the vendor request format."""
        pass

    @abstractmethod
    def format_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tool definitions to the vendor tool declaration format."""
        pass

    @abstractmethod
    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        """Extract normalized tool calls from a raw vendor response."""
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
        """Generate a response. Must be implemented by subclasses."""
        pass

    def _synthetic_tool_call_id(self) -> str:
        """Create an id for vendors that do not return one."""
        return f"{self.PROVIDER_NAME}_{uuid.uuid4().hex[:16]}"

    @staticmethod
    def _parse_arguments(raw: Any) -> dict[str, Any]:
        """Decode tool arguments that may arrive as a JSON string or object."""
        if raw is None or raw == "":
            return {}
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"Could not decode tool arguments: {raw[:200]}")
                return {"raw": raw}
            return parsed if isinstance(parsed, dict) else {"value": parsed}
        return {"value": raw}

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
