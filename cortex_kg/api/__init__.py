"""
Public API

    Brain: one user's knowledge twin (query, ingestion, graph)
    convenience: one-call helpers over a local knowledge base
"""

from cortex_kg.api.brain import Brain

__all__ = ["Brain"]
