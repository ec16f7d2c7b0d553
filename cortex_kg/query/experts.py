"""
Expert Pool

Experts are retrieval units the orchestrator runs according to classified
intent.

    KnowledgeExpert (sync):  scores the user's documents against the query
    SearchExpert (async):    web search
    VideoExpert (async):     site-scoped video search

Knowledge scoring:
    score = keyword hits + weight * cosine(fingerprint(query), document.fingerprint)

    A keyword hit is a query token longer than two characters that occurs in
    the document's title, summary, or content (case-insensitive). The top
    documents with a positive score are kept.

Async experts raise on failure; the orchestrator settles them and degrades
a failed expert to an empty output.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cortex_kg.types import Document, SearchResult, Source, VideoResult
from cortex_kg.utils.fingerprint import cosine_similarity, fingerprint

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig
    from cortex_kg.providers.base import SearchProvider
    from cortex_kg.providers.search.video import VideoSearchClient

logger = logging.getLogger(__name__)

WEB_LABEL = "Web Search Results"
VIDEO_LABEL = "Video Results"

_VIDEO_FILLER_RE = re.compile(r"\b(youtube|video|find|show|me|a)\b", re.IGNORECASE)


@dataclass
class KnowledgeOutput:
    context: str = ""
    sources: list[Source] = field(default_factory=list)


@dataclass
class SearchOutput:
    results: list[SearchResult] = field(default_factory=list)
    context: str = ""


@dataclass
class VideoOutput:
    results: list[VideoResult] = field(default_factory=list)
    context: str = ""


def format_results(results: Sequence[SearchResult], label: str = WEB_LABEL) -> str:
    """
    Format hits as a labelled markdown block.

    Returns an empty string when there are no hits.
    """
    if not results:
        return ""
    items = [
        f"{i}. **[{r.title}]({r.url})**\n   {r.snippet}"
        for i, r in enumerate(results, start=1)
    ]
    return f"## {label}:\n\n" + "\n\n".join(items)


def format_video_results(results: Sequence[VideoResult], label: str = VIDEO_LABEL) -> str:
    """Like format_results, with a watch link under every item."""
    if not results:
        return ""
    items = [
        f"{i}. **[{r.title}]({r.url})**\n   {r.snippet}\n   Watch: {r.url}"
        for i, r in enumerate(results, start=1)
    ]
    return f"## {label}:\n\n" + "\n\n".join(items)


def query_tokens(query: str) -> list[str]:
    """Lowercase whitespace tokens longer than two characters."""
    return [w for w in query.lower().split() if len(w) > 2]


class KnowledgeExpert:
    """Ranks the user's documents against a query."""

    def __init__(self, config: "CortexConfig") -> None:
        self._top_k = config.query_top_documents
        self._excerpt_chars = config.query_excerpt_chars
        self._weight = config.query_fingerprint_weight
        self._dimensions = config.fingerprint_dimensions

    def score(self, query: str, document: Document, query_vector: list[float] | None = None) -> float:
        """Keyword hits plus weighted fingerprint similarity."""
        haystack = f"{document.content} {document.title} {document.summary or ''}".lower()
        score = float(sum(1 for word in query_tokens(query) if word in haystack))

        if document.fingerprint:
            if query_vector is None:
                query_vector = fingerprint(query, self._dimensions)
            score += cosine_similarity(query_vector, document.fingerprint) * self._weight

        return score

    def run(self, query: str, documents: Sequence[Document]) -> KnowledgeOutput:
        query_vector = fingerprint(query, self._dimensions)
        scored = sorted(
            ((self.score(query, doc, query_vector), doc) for doc in documents),
            key=lambda pair: pair[0],
            reverse=True,
        )
        kept = [doc for score, doc in scored[: self._top_k] if score > 0]

        context = "\n\n".join(
            f"### {doc.title}\n{doc.summary or doc.content[: self._excerpt_chars]}"
            for doc in kept
        )
        sources = [Source(type="document", title=doc.title) for doc in kept]
        return KnowledgeOutput(context=context, sources=sources)


class SearchExpert:
    """Web search with a bounded timeout."""

    def __init__(self, search: "SearchProvider", config: "CortexConfig") -> None:
        self._search = search
        self._timeout = config.search_timeout
        self._max_results = config.search_max_results

    async def run(self, query: str) -> SearchOutput:
        results = await asyncio.wait_for(
            self._search.search(query, self._max_results),
            timeout=self._timeout,
        )
        return SearchOutput(results=results, context=format_results(results))


class VideoExpert:
    """Video search with a bounded timeout."""

    def __init__(self, videos: "VideoSearchClient", config: "CortexConfig") -> None:
        self._videos = videos
        self._timeout = config.search_timeout
        self._max_results = config.search_max_results

    @staticmethod
    def clean_query(query: str) -> str:
        """Drop video-request filler words; keep the original if nothing remains."""
        cleaned = " ".join(_VIDEO_FILLER_RE.sub(" ", query).split())
        return cleaned or query

    async def run(self, query: str) -> VideoOutput:
        results = await asyncio.wait_for(
            self._videos.search(self.clean_query(query), self._max_results),
            timeout=self._timeout,
        )
        # Only hits with an extracted id reach the context
        results = [r for r in results if r.video_id]
        return VideoOutput(results=results, context=format_video_results(results))
