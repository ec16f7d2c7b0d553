"""
OpenAI-Compatible LLM Provider (LangChain-based)

Implements LLMProvider using LangChain's ChatOpenAI against any
OpenAI-compatible endpoint. The default endpoint is NVIDIA's hosted
inference API, which serves the primary and fallback chat models.

Supports:
    - Chat completion (chat / generate)
    - Streaming responses (stream)

Example:
    >>> provider = OpenAILLMProvider.from_config(CortexConfig())
    >>> answer = await provider.generate("What is 2+2?")
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from cortex_kg.exceptions import ConfigurationError
from cortex_kg.providers.base import ChatMessage, LLMProvider
from cortex_kg.utils.telemetry import UsageRecord, current_stage, record_usage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage
    from langchain_openai import ChatOpenAI

    from cortex_kg.config.settings import CortexConfig


def _as_int(value: Any) -> int | None:
    """Best-effort int coercion."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _extract_token_usage(response: Any) -> tuple[int | None, int | None]:
    """
    Extract token usage from LangChain response metadata.

    Returns:
        (input_tokens, output_tokens)
    """
    usage = getattr(response, "usage_metadata", None)
    if isinstance(usage, dict):
        return (
            _as_int(usage.get("input_tokens") or usage.get("prompt_tokens")),
            _as_int(usage.get("output_tokens") or usage.get("completion_tokens")),
        )

    response_metadata = getattr(response, "response_metadata", None)
    if isinstance(response_metadata, dict):
        token_usage = response_metadata.get("token_usage") or response_metadata.get("usage")
        if isinstance(token_usage, dict):
            return (
                _as_int(token_usage.get("prompt_tokens") or token_usage.get("input_tokens")),
                _as_int(token_usage.get("completion_tokens") or token_usage.get("output_tokens")),
            )

    return None, None


def _to_langchain(messages: list[ChatMessage]) -> list["BaseMessage"]:
    """Convert role/content dicts to LangChain message objects."""
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

    converted: list[BaseMessage] = []
    for message in messages:
        role = message.get("role", "user")
        content = message.get("content", "")
        if role == "system":
            converted.append(SystemMessage(content=content))
        elif role == "assistant":
            converted.append(AIMessage(content=content))
        else:
            converted.append(HumanMessage(content=content))
    return converted


def _get_chat_openai(
    *,
    api_key: str,
    model: str,
    base_url: str | None,
    temperature: float,
    max_tokens: int,
    timeout: float,
    max_retries: int,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Uses lazy import to avoid loading langchain-openai until a call is made.
    """
    from langchain_openai import ChatOpenAI

    kwargs: dict[str, Any] = {
        "model": model,
        "api_key": api_key,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "timeout": timeout,
        "max_retries": max_retries,
    }
    if base_url:
        kwargs["base_url"] = base_url

    return ChatOpenAI(**kwargs)


class OpenAILLMProvider(LLMProvider):
    """
    Chat model behind an OpenAI-compatible API.

    Args:
        api_key: API key for the endpoint (required)
        model: Model to use
        base_url: Endpoint root; None for api.openai.com
        timeout: Seconds per call
        max_retries: Client-level retries per call

    Raises:
        ConfigurationError: If api_key is empty
    """

    def __init__(
        self,
        api_key: str | None,
        model: str,
        *,
        base_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                f"An API key is required for model '{model}'. Set NVIDIA_API_KEY."
            )
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries

    @classmethod
    def from_config(cls, config: "CortexConfig", model: str | None = None) -> "OpenAILLMProvider":
        """Build the primary (or a named) model from configuration."""
        return cls(
            config.nvidia_api_key,
            model or config.llm_model,
            base_url=config.llm_base_url,
            timeout=config.llm_timeout,
            max_retries=config.llm_max_retries,
        )

    def _client(self, temperature: float, max_tokens: int) -> "ChatOpenAI":
        return _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            base_url=self._base_url,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self._timeout,
            max_retries=self._max_retries,
        )

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> str:
        """
        Complete a conversation.

        Args:
            messages: role/content dicts, oldest first
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response
        """
        start = time.perf_counter_ns()
        client = self._client(temperature, max_tokens)

        ok = False
        response: Any = None
        try:
            response = await client.ainvoke(_to_langchain(messages))
            ok = True
        finally:
            input_tokens, output_tokens = _extract_token_usage(response)
            record_usage(
                UsageRecord(
                    provider="openai-compatible",
                    model=self._model,
                    operation="chat",
                    stage=current_stage(),
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    latency_ms=(time.perf_counter_ns() - start) // 1_000_000,
                    ok=ok,
                    metadata={"temperature": temperature, "max_tokens": max_tokens},
                )
            )

        return str(response.content)

    async def stream(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """
        Stream a completion chunk by chunk.

        Yields:
            Text chunks as they're generated
        """
        client = self._client(temperature, max_tokens)
        async for chunk in client.astream(_to_langchain(messages)):
            if chunk.content:
                yield str(chunk.content)

    def with_model(self, model: str) -> "OpenAILLMProvider":
        """Return a new provider on the same endpoint with a different model."""
        return OpenAILLMProvider(
            self._api_key,
            model,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=self._max_retries,
        )
