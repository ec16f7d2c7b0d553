"""
Convenience Functions

Top-level functions for common operations without explicit Brain
instantiation. These are designed for quick scripts and REPL usage.

Example:
    >>> from cortex_kg import add_document, ask
    >>> add_document("Trip notes", text, kb="./kb")
    >>> result = ask("What did I write about Paris?", kb="./kb")
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cortex_kg.api.brain import Brain
    from cortex_kg.types import AnswerResult, IngestResult, RebuildResult


def _open(kb: str | Path, user_id: str) -> "Brain":
    from cortex_kg.api.brain import Brain
    from cortex_kg.storage.parquet import ParquetStorage

    return Brain(ParquetStorage(kb), user_id)


def ask(
    question: str,
    *,
    kb: str | Path,
    user_id: str = "local",
    **kwargs: Any,
) -> "AnswerResult":
    """
    Ask a question against a local knowledge base.

    Args:
        question: Natural language question
        kb: Path to the knowledge base directory
        user_id: Knowledge base owner
        **kwargs: Additional arguments passed to Brain.ask()
    """

    async def _run() -> "AnswerResult":
        async with _open(kb, user_id) as brain:
            return await brain.ask(question, **kwargs)

    return asyncio.run(_run())


def add_document(
    title: str,
    content: str,
    *,
    kb: str | Path,
    user_id: str = "local",
    **kwargs: Any,
) -> "IngestResult":
    """Add a document to a local knowledge base and process it."""

    async def _run() -> "IngestResult":
        async with _open(kb, user_id) as brain:
            return await brain.add_document(title, content, **kwargs)

    return asyncio.run(_run())


def rebuild_graph(*, kb: str | Path, user_id: str = "local") -> "RebuildResult":
    """Rebuild a local knowledge base's graph from its documents."""

    async def _run() -> "RebuildResult":
        async with _open(kb, user_id) as brain:
            return await brain.rebuild_graph()

    return asyncio.run(_run())
