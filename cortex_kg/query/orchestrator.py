"""
Query Orchestrator

Per-query pipeline:

    1. Classify intent
    2. Run the knowledge expert inline (local, fast)
    3. Dispatch the async experts the intents call for, concurrently
    4. Settle all of them; a failed or timed-out expert contributes nothing
    5. Assemble an AgentContext (sources ordered knowledge, web, video)

Cancelling run() cancels any expert still in flight.

The caller turns the context into a system prompt with build_prompt() and
invokes the language model.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from cortex_kg.query.experts import (
    KnowledgeExpert,
    SearchExpert,
    SearchOutput,
    VideoExpert,
    VideoOutput,
)
from cortex_kg.query.intent import IntentClassifier
from cortex_kg.types import AgentContext, Document, ExpertType, Source
from cortex_kg.utils.telemetry import telemetry_stage

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig
    from cortex_kg.providers.base import SearchProvider

logger = logging.getLogger(__name__)

IDENTITY = (
    "You are Neural Cortex, an advanced AI knowledge twin powered by a multi-model "
    "mixture of experts system. You help users recall, connect, and build upon their knowledge."
)

KNOWLEDGE_HEADER = "## Your Knowledge Base (User's Documents):"

RESPONSE_GUIDELINES = """## Response Guidelines:
- Use markdown formatting for readability
- When referencing documents, mention their titles clearly
- When providing web search results, ALWAYS include the actual clickable URLs/links
- When recommending videos, ALWAYS include the full watch URL
- When referencing previous conversations, mention that naturally
- Clearly distinguish between: facts from user's documents, web search results, and your general knowledge
- If you're uncertain about something, say so explicitly
- Suggest connections between concepts when you notice them
- For questions that need external info (current events, specific websites, tutorials), USE the search results provided
- Keep responses focused and helpful"""


class Orchestrator:
    """
    Runs the experts selected for a query.

    Args:
        knowledge: Local document expert
        search: Web search expert, or None to never search
        video: Video search expert, or None to never search videos
        classifier: Intent classifier (defaults to the built-in rule table)
    """

    def __init__(
        self,
        knowledge: KnowledgeExpert,
        search: SearchExpert | None = None,
        video: VideoExpert | None = None,
        classifier: IntentClassifier | None = None,
    ) -> None:
        self.knowledge = knowledge
        self.search = search
        self.video = video
        self.classifier = classifier or IntentClassifier()

    @classmethod
    def from_config(
        cls,
        config: "CortexConfig",
        search_provider: "SearchProvider | None" = None,
    ) -> "Orchestrator":
        """Wire the experts; without a search provider only the knowledge expert runs."""
        from cortex_kg.providers.search import VideoSearchClient

        search = video = None
        if search_provider is not None:
            search = SearchExpert(search_provider, config)
            video = VideoExpert(VideoSearchClient(search_provider, config.video_site_hint), config)
        return cls(KnowledgeExpert(config), search, video)

    async def run(self, query: str, documents: Sequence[Document]) -> AgentContext:
        intents = self.classifier.classify(query)
        logger.info(f"Intents classified: {', '.join(i.value for i in intents)}")

        with telemetry_stage("knowledge_expert"):
            knowledge = self.knowledge.run(query, documents)

        tasks: dict[ExpertType, asyncio.Task[Any]] = {}
        if ExpertType.SEARCH in intents:
            if self.search is not None:
                with telemetry_stage("search_expert"):
                    tasks[ExpertType.SEARCH] = asyncio.create_task(self.search.run(query))
            else:
                logger.debug("Search intent but no search expert configured")
        if ExpertType.VIDEO in intents:
            if self.video is not None:
                with telemetry_stage("video_expert"):
                    tasks[ExpertType.VIDEO] = asyncio.create_task(self.video.run(query))
            else:
                logger.debug("Video intent but no video expert configured")

        outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)
        settled = dict(zip(tasks.keys(), outcomes))

        search_output = _settle(settled, ExpertType.SEARCH, SearchOutput)
        video_output = _settle(settled, ExpertType.VIDEO, VideoOutput)

        sources: list[Source] = [
            *knowledge.sources,
            *(Source(type="web", title=r.title, url=r.url) for r in search_output.results),
            *(Source(type="video", title=r.title, url=r.url) for r in video_output.results),
        ]

        return AgentContext(
            knowledge_context=knowledge.context,
            search_context=search_output.context,
            video_context=video_output.context,
            search_results=search_output.results,
            video_results=video_output.results,
            sources=sources,
            experts_used=list(intents),
        )


def _settle(settled: dict[ExpertType, Any], expert: ExpertType, empty: type) -> Any:
    """Outcome of one expert, or an empty output if it did not run or failed."""
    if expert not in settled:
        return empty()
    outcome = settled[expert]
    if isinstance(outcome, asyncio.CancelledError):
        logger.warning(f"{expert.value} expert was cancelled")
        return empty()
    if isinstance(outcome, asyncio.TimeoutError):
        logger.warning(f"{expert.value} expert timed out")
        return empty()
    if isinstance(outcome, BaseException):
        logger.warning(f"{expert.value} expert failed: {outcome!r}")
        return empty()
    return outcome


async def run_orchestration(
    query: str,
    documents: Sequence[Document],
    *,
    config: "CortexConfig | None" = None,
    search_provider: "SearchProvider | None" = None,
) -> AgentContext:
    """One-shot orchestration with a freshly wired Orchestrator."""
    from cortex_kg.config import CortexConfig

    orchestrator = Orchestrator.from_config(config or CortexConfig(), search_provider)
    return await orchestrator.run(query, documents)


def build_prompt(context: AgentContext, extra_context: str = "") -> str:
    """
    System prompt for the final answer.

    Sections: identity, knowledge base, web results, video results, extra
    context (e.g. earlier conversations), response guidelines. Empty
    sections are omitted.
    """
    sections = [IDENTITY]
    if context.knowledge_context:
        sections.append(f"{KNOWLEDGE_HEADER}\n\n{context.knowledge_context}")
    if context.search_context:
        sections.append(context.search_context)
    if context.video_context:
        sections.append(context.video_context)
    if extra_context:
        sections.append(extra_context.strip())
    sections.append(RESPONSE_GUIDELINES)
    return "\n\n".join(sections)
