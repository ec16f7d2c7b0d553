"""
Document Types

Documents are the user's ingested content. Extraction models describe what the
extraction collaborator returns for a document's text.

Storage Models:
    - Document: Persisted document with optional summary and fingerprint

Extraction Models:
    - TypedEntity: Named entity with a node type
    - ExtractionResult: Entities, summary, and key points for one text
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from cortex_kg.types.graph import NodeType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """
    A user-owned document.

    Attributes:
        id: Unique identifier
        user_id: Owner
        title: Display title (also keys the document's graph node)
        content: Raw extracted text
        summary: Consensus summary, once processed
        fingerprint: Deterministic text vector, once processed
        domain: Free-form domain tag
        entities: Extracted entity names, once processed
        key_points: Extracted key points, once processed
        tags: First few entity names
    """

    id: str
    user_id: str
    title: str
    content: str = ""
    summary: str | None = None
    fingerprint: list[float] | None = None
    domain: str = "general"
    entities: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TypedEntity(BaseModel):
    """An entity name with its node type."""

    name: str = Field(..., description="Entity name as it appears in the text")
    type: NodeType = Field(
        default=NodeType.ENTITY,
        description="concept, entity, idea, person, technology, topic, or organization",
    )


class ExtractionResult(BaseModel):
    """What the extraction collaborator returns for one text."""

    entities: list[TypedEntity] = Field(default_factory=list)
    summary: str = ""
    key_points: list[str] = Field(default_factory=list)
