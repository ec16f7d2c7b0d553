"""
LLM Providers

    OpenAILLMProvider: OpenAI-compatible endpoint via LangChain (primary models)
    FallbackLLMProvider: Primary -> fallback model chain
    HuggingFaceProvider: Secondary chat and summarization models
"""

from cortex_kg.providers.llm.fallback import FallbackLLMProvider
from cortex_kg.providers.llm.huggingface import HuggingFaceProvider
from cortex_kg.providers.llm.openai import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "FallbackLLMProvider", "HuggingFaceProvider"]
