"""
Abstract Provider Interfaces

Base classes for the external collaborators the core depends on: language
models, summarizers, web search, and entity extraction.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from cortex_kg.types import ExtractionResult, SearchResult

ChatMessage = dict[str, str]
"""{"role": "system" | "user" | "assistant", "content": str}"""


def build_messages(prompt: str, system: str | None = None) -> list[ChatMessage]:
    """Wrap a prompt (and optional system message) as chat messages."""
    messages: list[ChatMessage] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


class LLMProvider(ABC):
    """Abstract interface for chat language models."""

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> str:
        """Complete a conversation."""
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        """Stream a completion. Returns an async iterator of text chunks."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> str:
        """Complete a single prompt."""
        return await self.chat(
            build_messages(prompt, system),
            temperature=temperature,
            max_tokens=max_tokens,
        )


class SummarizationProvider(ABC):
    """Abstract interface for anything that condenses text."""

    @abstractmethod
    async def summarize(self, text: str) -> str:
        """Summarize text. Empty string means no summary."""
        ...


class SearchProvider(ABC):
    """Abstract interface for web search."""

    @abstractmethod
    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        """Return up to max_results hits."""
        ...


class Extractor(ABC):
    """Abstract interface for entity/summary/key-point extraction."""

    @abstractmethod
    async def extract(self, text: str) -> ExtractionResult:
        """Extract entities, a summary, and key points from text."""
        ...
