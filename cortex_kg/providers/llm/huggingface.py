"""
HuggingFace Inference Provider

Secondary models used for cross-validation:
    - chat models (tried in order) for fact-checking answers
    - an abstractive summarizer (BART) for consensus summaries

Free-tier models are frequently cold. The API answers HTTP 503 with an
`estimated_time` while a model loads; requests wait that long (capped) and
retry. Transport errors retry after a fixed delay. When retries run out a
TransientServiceError is raised and the caller degrades.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import httpx

from cortex_kg.exceptions import ConfigurationError, ParseError, TransientServiceError
from cortex_kg.providers.base import ChatMessage, LLMProvider, SummarizationProvider
from cortex_kg.utils.telemetry import UsageRecord, current_stage, record_usage

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig

logger = logging.getLogger(__name__)

SUMMARY_INPUT_CHARS = 3000
"""BART accepts ~1024 tokens; 3k characters stays under it."""


class HuggingFaceProvider(LLMProvider, SummarizationProvider):
    """
    HuggingFace Inference API client.

    Args:
        config: Configuration carrying the API key, model names, and retry policy
        transport: Optional httpx transport (tests pass httpx.MockTransport)

    Raises:
        ConfigurationError: If no HuggingFace API key is configured
    """

    def __init__(
        self,
        config: "CortexConfig",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.huggingface_api_key:
            raise ConfigurationError("HUGGINGFACE_API_KEY is not configured")
        self._config = config
        self._api_key = config.huggingface_api_key
        self._base_url = config.hf_base_url.rstrip("/")
        self._chat_models = list(config.hf_chat_models)
        self._transport = transport

    @property
    def model_name(self) -> str:
        return self._chat_models[0] if self._chat_models else self._config.hf_summarization_model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _post_with_retry(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        """
        POST with model-loading and transport retries.

        Returns the last response (which may still be an error status).

        Raises:
            TransientServiceError: If every attempt failed at the transport level
        """
        retries = self._config.hf_max_retries

        async with httpx.AsyncClient(
            timeout=self._config.hf_timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(retries + 1):
                try:
                    response = await client.post(url, json=payload, headers=self._headers())
                except httpx.TransportError as e:
                    if attempt < retries:
                        logger.info(
                            f"HF attempt {attempt + 1} failed: {e!r}, retrying..."
                        )
                        await asyncio.sleep(self._config.hf_transport_retry_delay)
                        continue
                    raise TransientServiceError(f"HF request failed: {e!r}") from e

                if response.status_code == 503 and attempt < retries:
                    wait = self._loading_wait(response)
                    logger.info(f"HF model loading, waiting {wait:.0f}s...")
                    await asyncio.sleep(wait)
                    continue

                return response

        raise TransientServiceError("HF API: max retries exceeded")

    def _loading_wait(self, response: httpx.Response) -> float:
        """Server-suggested wait, capped at the configured ceiling."""
        try:
            estimated = float(response.json().get("estimated_time", self._config.hf_default_wait))
        except (ValueError, AttributeError, TypeError):
            estimated = self._config.hf_default_wait
        return min(estimated, self._config.hf_max_wait)

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.is_success:
            return
        raise TransientServiceError(
            f"HF {what} error {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> str:
        """
        Chat completion, trying each configured model in turn.

        Raises:
            TransientServiceError | ParseError: From the last model tried
        """
        last_error: Exception | None = None

        for model in self._chat_models:
            start = time.perf_counter_ns()
            ok = False
            try:
                response = await self._post_with_retry(
                    f"{self._base_url}/v1/chat/completions",
                    {
                        "model": model,
                        "messages": messages,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                        "stream": False,
                    },
                )
                self._raise_for_status(response, f"chat ({model})")
                content = _chat_content(response)
                ok = True
                return content
            except (TransientServiceError, ParseError) as e:
                logger.warning(f"HF model {model} failed: {e}")
                last_error = e
            finally:
                record_usage(
                    UsageRecord(
                        provider="huggingface",
                        model=model,
                        operation="chat",
                        stage=current_stage(),
                        latency_ms=(time.perf_counter_ns() - start) // 1_000_000,
                        ok=ok,
                    )
                )

        raise last_error or TransientServiceError("All HF chat models failed")

    async def stream(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """The inference API is used non-streaming; yields one chunk."""
        yield await self.chat(messages, temperature=temperature, max_tokens=max_tokens)

    async def summarize(self, text: str) -> str:
        """
        Abstractive summary from the configured summarization model.

        Raises:
            TransientServiceError | ParseError
        """
        model = self._config.hf_summarization_model
        start = time.perf_counter_ns()
        ok = False
        try:
            response = await self._post_with_retry(
                f"{self._base_url}/models/{model}",
                {
                    "inputs": text[:SUMMARY_INPUT_CHARS],
                    "parameters": {"max_length": 200, "min_length": 30, "do_sample": False},
                },
            )
            self._raise_for_status(response, "summarization")
            summary = _summary_text(response)
            ok = True
            return summary
        finally:
            record_usage(
                UsageRecord(
                    provider="huggingface",
                    model=model,
                    operation="summarize",
                    stage=current_stage(),
                    latency_ms=(time.perf_counter_ns() - start) // 1_000_000,
                    ok=ok,
                )
            )


def _chat_content(response: httpx.Response) -> str:
    try:
        content = response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ParseError(f"Unexpected HF chat response: {response.text[:200]}") from e
    if not content:
        raise ParseError("Empty HF response")
    return str(content)


def _summary_text(response: httpx.Response) -> str:
    try:
        return str(response.json()[0].get("summary_text", ""))
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        raise ParseError(f"Unexpected HF summarization response: {response.text[:200]}") from e
