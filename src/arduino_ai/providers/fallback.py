"""
Provider fallback chain.

Wraps several providers behind the ILLMProvider interface. A request
that fails with a retryable ProviderError is replayed unchanged against
the next provider in the chain.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.entities import ChatResponse, ErrorType, Message, ToolDefinition
from ..domain.exceptions import ConfigurationError, ProviderError
from ..domain.ports import ILLMProvider

logger = logging.getLogger(__name__)

FALLBACK_ERROR_TYPES = frozenset({
    ErrorType.RECOVERABLE,
    ErrorType.TIMEOUT,
    ErrorType.RATE_LIMIT,
    ErrorType.AUTH,
})


class FallbackProvider(ILLMProvider):
    """Try providers in order until one answers.

    Fatal errors stop the chain immediately. The messages list passed
    to chat() is never modified.

    Usage:
        provider = FallbackProvider([claude, gpt, gemini])
        response = await provider.chat(messages, tools)
        print(response.provider)  # whichever answered
    """

    def __init__(self, providers: list[ILLMProvider]):
        if not providers:
            raise ConfigurationError("FallbackProvider needs at least one provider")
        self.providers = list(providers)
        self._active = self.providers[0]

    @property
    def name(self) -> str:
        return "fallback(" + ",".join(p.name for p in self.providers) + ")"

    @property
    def model_name(self) -> str:
        """Model of the provider that answered last."""
        return self._active.model_name

    def available_models(self) -> list[str]:
        models: list[str] = []
        for provider in self.providers:
            models.extend(m for m in provider.available_models() if m not in models)
        return models

    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        last_error: Optional[ProviderError] = None

        for index, provider in enumerate(self.providers):
            try:
                response = await provider.chat(
                    list(messages),
                    tools=tools,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except ProviderError as e:
                last_error = e
                if e.error_type not in FALLBACK_ERROR_TYPES:
                    logger.error(f"Provider {provider.name} failed fatally: {e}")
                    raise
                if index + 1 < len(self.providers):
                    logger.warning(
                        f"Provider {provider.name} failed ({e.error_type.value}): {e}. "
                        f"Falling back to {self.providers[index + 1].name}"
                    )
                continue

            self._active = provider
            return response

        logger.error("All providers in the fallback chain failed")
        raise last_error

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()
