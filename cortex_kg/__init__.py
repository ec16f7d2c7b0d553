"""
cortex-kg - Personal Knowledge Twin

Answers questions over a user's own documents with a mixture of experts
(local knowledge, web search, video search), cross-checked by a second
model, while maintaining a weighted entity graph of everything ingested.

Example:
    >>> from cortex_kg import Brain, ParquetStorage
    >>> brain = Brain(ParquetStorage("./kb"), user_id="me")
    >>> await brain.add_document("Trip notes", text)
    >>> result = await brain.ask("What did I write about Paris?")
    >>> print(result.answer)

Main Classes:
    Brain: Primary entry point for all operations
    CortexConfig: Configuration management
    InMemoryStorage / ParquetStorage: Persistence backends
"""

__version__ = "0.1.0"


# Public API - lazy imports to avoid loading provider dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "Brain":
        from cortex_kg.api.brain import Brain
        return Brain

    if name == "CortexConfig":
        from cortex_kg.config.settings import CortexConfig
        return CortexConfig

    if name in ("InMemoryStorage", "ParquetStorage"):
        from cortex_kg import storage
        return getattr(storage, name)

    # Convenience functions
    if name in ("ask", "add_document", "rebuild_graph"):
        from cortex_kg.api import convenience
        return getattr(convenience, name)

    # Core operations
    if name in ("classify_intent", "build_prompt", "run_orchestration"):
        from cortex_kg import query
        return getattr(query, name)

    if name == "compute_visual_graph":
        from cortex_kg.graph.clustering import compute_visual_graph
        return compute_visual_graph

    # Types
    if name in ("Document", "KnowledgeNode", "AgentContext", "AnswerResult", "VisualGraph"):
        from cortex_kg import types
        return getattr(types, name)

    raise AttributeError(f"module 'cortex_kg' has no attribute {name!r}")


__all__ = [
    # Main classes
    "Brain",
    "CortexConfig",
    "InMemoryStorage",
    "ParquetStorage",

    # Convenience functions
    "ask",
    "add_document",
    "rebuild_graph",

    # Core operations
    "classify_intent",
    "build_prompt",
    "run_orchestration",
    "compute_visual_graph",

    # Types
    "Document",
    "KnowledgeNode",
    "AgentContext",
    "AnswerResult",
    "VisualGraph",

    # Version
    "__version__",
]
