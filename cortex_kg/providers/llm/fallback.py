"""
Model Fallback Chain

Tries a sequence of LLM providers in order and returns the first success.
The primary model answers normally; the fallback model only sees traffic
when the primary raises.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING

from cortex_kg.providers.base import ChatMessage, LLMProvider

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig

logger = logging.getLogger(__name__)


class FallbackLLMProvider(LLMProvider):
    """
    LLMProvider that delegates to a chain of providers.

    Args:
        providers: Primary first; at least one required
    """

    def __init__(self, providers: Sequence[LLMProvider]) -> None:
        if not providers:
            raise ValueError("FallbackLLMProvider needs at least one provider")
        self._providers = list(providers)

    @classmethod
    def from_config(cls, config: "CortexConfig") -> "FallbackLLMProvider":
        """Primary model followed by the configured fallback model."""
        from cortex_kg.providers.llm.openai import OpenAILLMProvider

        primary = OpenAILLMProvider.from_config(config)
        chain: list[LLMProvider] = [primary]
        if config.llm_fallback_model and config.llm_fallback_model != config.llm_model:
            chain.append(primary.with_model(config.llm_fallback_model))
        return cls(chain)

    @property
    def model_name(self) -> str:
        return self._providers[0].model_name

    @property
    def providers(self) -> list[LLMProvider]:
        return list(self._providers)

    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> str:
        last_error: Exception | None = None
        for provider in self._providers:
            try:
                return await provider.chat(
                    messages, temperature=temperature, max_tokens=max_tokens
                )
            except Exception as e:
                logger.warning(f"Model {provider.model_name} failed: {e}")
                last_error = e
        assert last_error is not None
        raise last_error

    async def stream(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """
        Stream from the first provider that produces output.

        A provider that fails after yielding text is not retried; the partial
        answer has already reached the caller.
        """
        last_error: Exception | None = None
        for provider in self._providers:
            started = False
            try:
                async for chunk in provider.stream(
                    messages, temperature=temperature, max_tokens=max_tokens
                ):
                    started = True
                    yield chunk
                return
            except Exception as e:
                if started:
                    raise
                logger.warning(f"Streaming from {provider.model_name} failed: {e}")
                last_error = e
        assert last_error is not None
        raise last_error
