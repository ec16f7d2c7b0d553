"""
Graph Types

Storage Models:
    - NodeType: Classification of knowledge nodes
    - KnowledgeNode: Persisted node with strength and symmetric connections

Presentation Models:
    - GraphLink: Undirected link between two nodes (optionally a bridge)
    - VisualGraph: Capped node/link set ready for layout
    - RebuildResult: Counters from a graph rebuild
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    """
    Knowledge node types.

    ENTITY is the generic fallback; it is promoted to a more specific type
    the first time one is observed.
    """

    CONCEPT = "concept"
    ENTITY = "entity"
    IDEA = "idea"
    DOCUMENT = "document"
    PERSON = "person"
    TECHNOLOGY = "technology"
    TOPIC = "topic"
    ORGANIZATION = "organization"

    @classmethod
    def coerce(cls, value: "str | NodeType | None") -> "NodeType":
        """Map a free-form label to a node type, defaulting to ENTITY."""
        if isinstance(value, NodeType):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.ENTITY


GENERIC_NODE_TYPE = NodeType.ENTITY


class KnowledgeNode(BaseModel):
    """
    A node in a user's knowledge graph.

    Attributes:
        id: Unique identifier
        user_id: Owner
        label: Unique per user
        type: Node classification
        strength: Grows each time the label is observed, capped
        connections: Ids of linked nodes (symmetric, no self-loops)
        description: Short provenance note
    """

    id: str
    user_id: str
    label: str
    type: NodeType = NodeType.ENTITY
    strength: float = Field(default=1.0, ge=0.0)
    connections: set[str] = Field(default_factory=set)
    description: str = ""

    model_config = ConfigDict(use_enum_values=False)


class GraphLink(BaseModel):
    """An undirected link between two node ids."""

    source: str
    target: str
    strength: float = 1.0
    bridge: bool = False

    def key(self) -> tuple[str, str]:
        """Order-independent identity of the link."""
        return (self.source, self.target) if self.source <= self.target else (self.target, self.source)


class VisualGraph(BaseModel):
    """
    Presentation-safe graph.

    `links` holds the rendered links; `bridges` holds synthetic links that only
    keep disconnected components near each other during layout.
    """

    nodes: list[KnowledgeNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)
    bridges: list[GraphLink] = Field(default_factory=list)
    components: int = 0

    @property
    def layout_links(self) -> list[GraphLink]:
        """All links for force/layout computation, bridges included."""
        return [*self.links, *self.bridges]

    def neighbors(self, node_id: str) -> set[str]:
        """Ids linked to node_id through rendered links only."""
        result: set[str] = set()
        for link in self.links:
            if link.source == node_id:
                result.add(link.target)
            elif link.target == node_id:
                result.add(link.source)
        return result


class RebuildResult(BaseModel):
    """Counters from a full graph rebuild."""

    nodes_created: int = 0
    connections_created: int = 0
    documents_processed: int = 0


class GraphUpdate(BaseModel):
    """Counters from folding one document's entities into the graph."""

    nodes_created: int = 0
    nodes_touched: int = 0
    connections_created: int = 0
    document_node_id: str | None = None
