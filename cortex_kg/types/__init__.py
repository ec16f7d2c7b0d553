"""
Types

Pydantic models shared across cortex-kg.

Modules:
    documents: Document and extraction models
    graph: Knowledge nodes, links, and visual graphs
    agents: Query pipeline models
    conversations: Stored conversations and messages
"""

from cortex_kg.types.agents import (
    AgentContext,
    AnswerResult,
    ExpertType,
    IngestResult,
    SearchResult,
    Source,
    StreamChunk,
    VideoResult,
)
from cortex_kg.types.conversations import Conversation, Message
from cortex_kg.types.documents import Document, ExtractionResult, TypedEntity
from cortex_kg.types.graph import (
    GENERIC_NODE_TYPE,
    GraphUpdate,
    GraphLink,
    KnowledgeNode,
    NodeType,
    RebuildResult,
    VisualGraph,
)

__all__ = [
    "AgentContext",
    "AnswerResult",
    "Conversation",
    "Document",
    "ExpertType",
    "ExtractionResult",
    "GENERIC_NODE_TYPE",
    "GraphLink",
    "GraphUpdate",
    "IngestResult",
    "KnowledgeNode",
    "Message",
    "NodeType",
    "RebuildResult",
    "SearchResult",
    "Source",
    "StreamChunk",
    "TypedEntity",
    "VideoResult",
]
