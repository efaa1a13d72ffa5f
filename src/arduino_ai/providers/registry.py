"""
Provider Registry.

Maps provider names to provider classes so the orchestrator can switch
vendors by name without knowing any concrete adapter.

Usage:
    registry = default_registry()
    provider = registry.create("claude", api_key="sk-ant-...")

    registry.provider_for_model("gpt-4o")  # "openai"
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..domain.exceptions import ConfigurationError
from .anthropic import AnthropicProvider
from .base import BaseLLMProvider, LLMProviderConfig
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)

# Display names for the unified model picker
MODEL_DISPLAY_NAMES = {
    "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet",
    "claude-3-opus-20240229": "Claude 3 Opus",
    "claude-3-sonnet-20240229": "Claude 3 Sonnet",
    "claude-3-haiku-20240307": "Claude 3 Haiku",
    "claude-3-5-haiku-20241022": "Claude 3.5 Haiku",
    "gpt-4o-mini": "GPT-4o Mini",
    "gpt-4o": "GPT-4o",
    "gpt-4-turbo": "GPT-4 Turbo",
    "gpt-4": "GPT-4",
    "gpt-3.5-turbo": "GPT-3.5 Turbo",
    "gemini-1.5-flash": "Gemini 1.5 Flash",
    "gemini-1.5-flash-latest": "Gemini 1.5 Flash (Latest)",
    "gemini-1.5-pro": "Gemini 1.5 Pro",
    "gemini-1.5-pro-latest": "Gemini 1.5 Pro (Latest)",
    "gemini-2.0-flash-exp": "Gemini 2.0 Flash (Experimental)",
}

# Model id prefix -> provider name
MODEL_PREFIXES = (
    ("claude-", "claude"),
    ("gpt-", "openai"),
    ("o1", "openai"),
    ("o3", "openai"),
    ("gemini-", "gemini"),
)


class ProviderRegistry:
    """Name-keyed registry of LLM provider classes.

    Attributes:
        timeout: Request timeout applied to every provider created here
        max_tokens: Default max tokens applied to every provider created here
    """

    def __init__(self, timeout: float = 60.0, max_tokens: int = 2000):
        self._providers: dict[str, type[BaseLLMProvider]] = {}
        self.timeout = timeout
        self.max_tokens = max_tokens

    def register(self, name: str, provider_cls: type[BaseLLMProvider]) -> None:
        """Register (or replace) a provider class under a name."""
        if name in self._providers:
            logger.debug(f"Replacing provider registration: {name}")
        self._providers[name] = provider_cls

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def get_class(self, name: str) -> type[BaseLLMProvider]:
        """Return the provider class for a name.

        Raises:
            ConfigurationError: If the provider is unknown
        """
        provider_cls = self._providers.get(name)
        if provider_cls is None:
            raise ConfigurationError(
                f"Unknown provider: {name}. "
                f"Available: {', '.join(self.available_providers())}",
                details={"provider": name},
            )
        return provider_cls

    def create(
        self,
        name: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        **config_kwargs: Any,
    ) -> BaseLLMProvider:
        """Instantiate a provider.

        Raises:
            ConfigurationError: If the provider is unknown
            InvalidAPIKeyError: If the key fails the provider's format check
        """
        provider_cls = self.get_class(name)
        config_kwargs.setdefault("timeout", self.timeout)
        config_kwargs.setdefault("max_tokens", self.max_tokens)
        config = LLMProviderConfig(api_key=api_key, model=model, **config_kwargs)
        provider = provider_cls(config)
        logger.info(f"Created {name} provider with model: {provider.model_name}")
        return provider

    def available_providers(self) -> list[str]:
        return list(self._providers)

    def available_models(self, name: str) -> list[str]:
        return list(self.get_class(name).AVAILABLE_MODELS)

    def provider_for_model(self, model_id: Optional[str]) -> Optional[str]:
        """Infer the provider name from a model id, None when unknown."""
        if not model_id or not isinstance(model_id, str):
            return None
        model = model_id.lower()
        for prefix, provider_name in MODEL_PREFIXES:
            if model.startswith(prefix) and provider_name in self._providers:
                return provider_name
        for provider_name, provider_cls in self._providers.items():
            if model_id in provider_cls.AVAILABLE_MODELS:
                return provider_name
        return None

    def unified_model_list(self) -> list[dict[str, str]]:
        """All models of all registered providers for a model picker."""
        models = []
        for provider_name, provider_cls in self._providers.items():
            for model_id in provider_cls.AVAILABLE_MODELS:
                models.append({
                    "id": model_id,
                    "display_name": MODEL_DISPLAY_NAMES.get(model_id, model_id),
                    "provider": provider_name,
                })
        return models


def default_registry(timeout: float = 60.0, max_tokens: int = 2000) -> ProviderRegistry:
    """Registry with every built-in provider."""
    registry = ProviderRegistry(timeout=timeout, max_tokens=max_tokens)
    registry.register(AnthropicProvider.PROVIDER_NAME, AnthropicProvider)
    registry.register(OpenAIProvider.PROVIDER_NAME, OpenAIProvider)
    registry.register(GeminiProvider.PROVIDER_NAME, GeminiProvider)
    registry.register(OllamaProvider.PROVIDER_NAME, OllamaProvider)
    return registry
