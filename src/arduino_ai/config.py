"""
Agent settings loaded from environment variables.

Environment Variables:
    - AI_PROVIDER: Provider name (claude, openai, gemini, ollama). Default: claude
    - AI_MODEL: Model id (default: the provider's default model)
    - AI_FALLBACK_PROVIDERS: Comma-separated providers tried after AI_PROVIDER
    - ANTHROPIC_API_KEY / OPENAI_API_KEY / GEMINI_API_KEY: Vendor API keys
    - OLLAMA_BASE_URL / OLLAMA_MODEL: Local Ollama server and model
    - AGENT_MAX_ITERATIONS: Provider rounds per query (default: 10)
    - AGENT_TEMPERATURE / AGENT_MAX_TOKENS: Sampling settings
    - PROVIDER_TIMEOUT: Vendor request timeout in seconds (default: 60)
    - MEMORY_DB_PATH: SQLite file of the error memory
    - EXECUTION_LOG_SIZE: Tool executions kept in memory (default: 100)
    - SERIAL_BUFFER_SIZE: Serial chunks kept for read_serial (default: 1000)
    - LOG_LEVEL: Logging level for the CLI (default: INFO)
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

APP_DIR_NAME = "arduino-ai"
MEMORY_DB_FILENAME = "memory.db"

API_KEY_ENV_VARS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def default_memory_db_path() -> str:
    """Per-user location of the memory database."""
    if sys.platform == "win32" and os.getenv("APPDATA"):
        base = Path(os.environ["APPDATA"])
    else:
        base = Path(os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config")
    return str(base / APP_DIR_NAME / MEMORY_DB_FILENAME)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


@dataclass
class AgentSettings:
    """Runtime settings for the agent.

    Attributes:
        provider: Primary provider name
        model: Model id for the primary provider
        fallback_providers: Providers tried in order when the primary fails
        api_keys: API key per provider name
        ollama_base_url: Base URL of the Ollama server
        ollama_model: Model used when Ollama is not the primary provider
        max_iterations: Provider rounds per query
        temperature: Sampling temperature
        max_tokens: Maximum tokens per response
        provider_timeout: Vendor request timeout in seconds
        memory_db_path: SQLite file of the error memory (":memory:" for none)
        execution_log_size: Capacity of the tool execution log
        serial_buffer_size: Capacity of the serial telemetry buffer
        log_level: Logging level name
    """

    provider: str = "claude"
    model: Optional[str] = None
    fallback_providers: list[str] = field(default_factory=list)
    api_keys: dict[str, str] = field(default_factory=dict)
    ollama_base_url: Optional[str] = None
    ollama_model: Optional[str] = None
    max_iterations: int = 10
    temperature: float = 0.7
    max_tokens: int = 2000
    provider_timeout: float = 60.0
    memory_db_path: str = field(default_factory=default_memory_db_path)
    execution_log_size: int = 100
    serial_buffer_size: int = 1000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> AgentSettings:
        """Build settings from the environment (and .env when dotenv is True).

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        if dotenv:
            load_dotenv()

        api_keys = {
            provider: os.environ[env_var]
            for provider, env_var in API_KEY_ENV_VARS.items()
            if os.getenv(env_var)
        }
        fallback = [
            name.strip().lower()
            for name in os.getenv("AI_FALLBACK_PROVIDERS", "").split(",")
            if name.strip()
        ]

        settings = cls(
            provider=os.getenv("AI_PROVIDER", "claude").strip().lower(),
            model=os.getenv("AI_MODEL") or None,
            fallback_providers=fallback,
            api_keys=api_keys,
            ollama_base_url=os.getenv("OLLAMA_BASE_URL") or None,
            ollama_model=os.getenv("OLLAMA_MODEL") or None,
            max_iterations=_int_env("AGENT_MAX_ITERATIONS", 10),
            temperature=_float_env("AGENT_TEMPERATURE", 0.7),
            max_tokens=_int_env("AGENT_MAX_TOKENS", 2000),
            provider_timeout=_float_env("PROVIDER_TIMEOUT", 60.0),
            memory_db_path=os.getenv("MEMORY_DB_PATH") or default_memory_db_path(),
            execution_log_size=_int_env("EXECUTION_LOG_SIZE", 100),
            serial_buffer_size=_int_env("SERIAL_BUFFER_SIZE", 1000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ConfigurationError for out-of-range values."""
        if self.max_iterations < 1:
            raise ConfigurationError("AGENT_MAX_ITERATIONS must be at least 1")
        if self.execution_log_size < 1:
            raise ConfigurationError("EXECUTION_LOG_SIZE must be at least 1")
        if self.serial_buffer_size < 1:
            raise ConfigurationError("SERIAL_BUFFER_SIZE must be at least 1")
        if self.provider_timeout <= 0:
            raise ConfigurationError("PROVIDER_TIMEOUT must be positive")

    def api_key_for(self, provider: str) -> Optional[str]:
        return self.api_keys.get(provider)
