"""LLM provider implementations."""

from .base import BaseLLMProvider, LLMProviderConfig
from .anthropic import AnthropicProvider
from .openai import OpenAIProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .fallback import FallbackProvider
from .registry import ProviderRegistry, default_registry

__all__ = [
    "BaseLLMProvider",
    "LLMProviderConfig",
    "AnthropicProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "OllamaProvider",
    "FallbackProvider",
    "ProviderRegistry",
    "default_registry",
]
