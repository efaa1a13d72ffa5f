"""
Tests for environment-based settings.
"""

import pytest

from arduino_ai.config import AgentSettings, default_memory_db_path
from arduino_ai.domain.exceptions import ConfigurationError


ENV_VARS = [
    "AI_PROVIDER",
    "AI_MODEL",
    "AI_FALLBACK_PROVIDERS",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "AGENT_MAX_ITERATIONS",
    "AGENT_TEMPERATURE",
    "AGENT_MAX_TOKENS",
    "PROVIDER_TIMEOUT",
    "MEMORY_DB_PATH",
    "EXECUTION_LOG_SIZE",
    "SERIAL_BUFFER_SIZE",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any agent variables."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestAgentSettingsFromEnv:
    """Tests for AgentSettings.from_env."""

    def test_defaults(self, clean_env):
        settings = AgentSettings.from_env(dotenv=False)

        assert settings.provider == "claude"
        assert settings.model is None
        assert settings.fallback_providers == []
        assert settings.api_keys == {}
        assert settings.max_iterations == 10
        assert settings.temperature == 0.7
        assert settings.max_tokens == 2000
        assert settings.provider_timeout == 60.0
        assert settings.execution_log_size == 100
        assert settings.serial_buffer_size == 1000
        assert settings.log_level == "INFO"
        assert settings.memory_db_path.endswith("memory.db")

    def test_reads_all_variables(self, clean_env):
        clean_env.setenv("AI_PROVIDER", " OpenAI ")
        clean_env.setenv("AI_MODEL", "gpt-4o")
        clean_env.setenv("AI_FALLBACK_PROVIDERS", "claude, Ollama,,")
        clean_env.setenv("OPENAI_API_KEY", "sk-test-123")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant-test-123")
        clean_env.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434")
        clean_env.setenv("OLLAMA_MODEL", "llama3.1:8b")
        clean_env.setenv("AGENT_MAX_ITERATIONS", "4")
        clean_env.setenv("AGENT_TEMPERATURE", "0.1")
        clean_env.setenv("AGENT_MAX_TOKENS", "800")
        clean_env.setenv("PROVIDER_TIMEOUT", "12.5")
        clean_env.setenv("MEMORY_DB_PATH", "/tmp/arduino-memory.db")
        clean_env.setenv("EXECUTION_LOG_SIZE", "25")
        clean_env.setenv("SERIAL_BUFFER_SIZE", "200")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = AgentSettings.from_env(dotenv=False)

        assert settings.provider == "openai"
        assert settings.model == "gpt-4o"
        assert settings.fallback_providers == ["claude", "ollama"]
        assert settings.api_key_for("openai") == "sk-test-123"
        assert settings.api_key_for("claude") == "sk-ant-test-123"
        assert settings.api_key_for("gemini") is None
        assert settings.ollama_base_url == "http://gpu-box:11434"
        assert settings.ollama_model == "llama3.1:8b"
        assert settings.max_iterations == 4
        assert settings.temperature == 0.1
        assert settings.max_tokens == 800
        assert settings.provider_timeout == 12.5
        assert settings.memory_db_path == "/tmp/arduino-memory.db"
        assert settings.execution_log_size == 25
        assert settings.serial_buffer_size == 200
        assert settings.log_level == "DEBUG"

    def test_non_numeric_value(self, clean_env):
        clean_env.setenv("AGENT_MAX_ITERATIONS", "ten")

        with pytest.raises(ConfigurationError, match="AGENT_MAX_ITERATIONS must be an integer"):
            AgentSettings.from_env(dotenv=False)

    @pytest.mark.parametrize("var,value", [
        ("AGENT_MAX_ITERATIONS", "0"),
        ("EXECUTION_LOG_SIZE", "0"),
        ("SERIAL_BUFFER_SIZE", "-1"),
        ("PROVIDER_TIMEOUT", "0"),
    ])
    def test_out_of_range_values(self, clean_env, var, value):
        clean_env.setenv(var, value)

        with pytest.raises(ConfigurationError, match=var):
            AgentSettings.from_env(dotenv=False)


class TestDefaultMemoryPath:

    def test_xdg_config_home(self, monkeypatch, tmp_path):
        monkeypatch.setattr("arduino_ai.config.sys.platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert default_memory_db_path() == str(tmp_path / "arduino-ai" / "memory.db")

    def test_windows_appdata(self, monkeypatch, tmp_path):
        monkeypatch.setattr("arduino_ai.config.sys.platform", "win32")
        monkeypatch.setenv("APPDATA", str(tmp_path))

        assert default_memory_db_path() == str(tmp_path / "arduino-ai" / "memory.db")
