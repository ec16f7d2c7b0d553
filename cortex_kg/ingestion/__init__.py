"""
Ingestion

    extractor: LLM-backed entity/summary/key-point extraction
    pipeline: summarize + extract + persist + link for one document
"""

from cortex_kg.ingestion.extractor import LLMExtractor, parse_extraction
from cortex_kg.ingestion.pipeline import DocumentProcessor

__all__ = [
    "DocumentProcessor",
    "LLMExtractor",
    "parse_extraction",
]
