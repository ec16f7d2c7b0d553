"""
External Providers

Provider-agnostic interfaces for the collaborators the core calls out to.

Modules:
    base: Abstract provider interfaces
    llm/: Language model implementations
    search/: Web and video search implementations

Design:
    - All providers implement abstract interfaces from base
    - Configuration is injected at construction; missing credentials raise
      ConfigurationError there and never mid-query
"""

from cortex_kg.providers.base import (
    ChatMessage,
    Extractor,
    LLMProvider,
    SearchProvider,
    SummarizationProvider,
)

__all__ = [
    "ChatMessage",
    "Extractor",
    "LLMProvider",
    "SearchProvider",
    "SummarizationProvider",
]
