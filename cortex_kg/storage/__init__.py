"""
Storage Layer

Backends:
    memory: InMemoryStorage (tests, ephemeral sessions)
    parquet: ParquetStorage (local on-disk knowledge base)
"""

from cortex_kg.storage.base import GraphStorage
from cortex_kg.storage.memory import InMemoryStorage
from cortex_kg.storage.parquet import ParquetStorage

__all__ = [
    "GraphStorage",
    "InMemoryStorage",
    "ParquetStorage",
]
