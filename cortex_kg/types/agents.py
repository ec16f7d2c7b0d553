"""
Agent Types

Types produced by the multi-expert query pipeline.

    - ExpertType: Expert tags chosen by the intent classifier
    - SearchResult / VideoResult: External search hits
    - Source: Flat citation entry
    - AgentContext: Per-query context assembled by the orchestrator
    - AnswerResult: Final answer returned to the caller
"""

from enum import Enum

from pydantic import BaseModel, Field


class ExpertType(str, Enum):
    """Expert tags."""

    KNOWLEDGE = "knowledge"
    SEARCH = "search"
    VIDEO = "video"
    SUMMARIZE = "summarize"


class SearchResult(BaseModel):
    """One web search hit."""

    title: str
    url: str
    snippet: str = ""


class VideoResult(SearchResult):
    """A search hit on a video host with its extracted video id."""

    video_id: str


class Source(BaseModel):
    """Citation entry: document, web, or video."""

    type: str
    title: str
    url: str | None = None


class AgentContext(BaseModel):
    """
    Context assembled for one query.

    Sources are ordered knowledge, web, video and are not deduplicated
    across experts.
    """

    knowledge_context: str = ""
    search_context: str = ""
    video_context: str = ""
    search_results: list[SearchResult] = Field(default_factory=list)
    video_results: list[VideoResult] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    experts_used: list[ExpertType] = Field(default_factory=list)

    def combined_context(self) -> str:
        """Non-empty context blocks joined for validation."""
        blocks = [self.knowledge_context, self.search_context, self.video_context]
        return "\n\n".join(b for b in blocks if b)


class AnswerResult(BaseModel):
    """Answer returned by Brain.ask."""

    answer: str
    sources: list[Source] = Field(default_factory=list)
    experts_used: list[ExpertType] = Field(default_factory=list)
    flagged: bool = False
    timing: dict[str, int] = Field(default_factory=dict)
    conversation_id: str | None = None

    @property
    def total_time_ms(self) -> int:
        """Total query time in milliseconds."""
        return sum(self.timing.values())


class IngestResult(BaseModel):
    """Result from processing one document into the graph."""

    document_id: str
    summary: str = ""
    entities: int = 0
    key_points: int = 0
    nodes_touched: int = 0
    connections_created: int = 0
    processed: bool = False
    errors: list[str] = Field(default_factory=list)


class StreamChunk(BaseModel):
    """
    One event of a streamed answer.

    Text events carry `content`; the final event has `done=True`, the
    sources, and the conversation the turn was saved to.
    """

    content: str = ""
    done: bool = False
    sources: list[Source] = Field(default_factory=list)
    conversation_id: str | None = None
