"""
Abstract Storage Interface

Defines the contract the knowledge graph store, the ingestion pipeline, and
conversation memory need from persistence.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cortex_kg.types import Conversation, Document, KnowledgeNode, Message


class GraphStorage(ABC):
    """
    Abstract interface for node, document, and conversation persistence.

    Every user's nodes and documents are independent. Node labels are unique
    per user; create_node enforces it.

    Lifecycle:
        storage = ParquetStorage(path)
        await storage.initialize()
        # ... operations ...
        await storage.close()

    Or using context manager:
        async with ParquetStorage(path) as storage:
            await storage.list_nodes("u1")
    """

    async def initialize(self) -> None:
        """Prepare storage (create directories, files)."""

    async def close(self) -> None:
        """Release resources."""

    async def __aenter__(self) -> "GraphStorage":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_node(self, node_id: str) -> "KnowledgeNode | None":
        """Get a node by id."""
        ...

    @abstractmethod
    async def get_node_by_label(self, user_id: str, label: str) -> "KnowledgeNode | None":
        """Get a user's node by its exact label."""
        ...

    @abstractmethod
    async def list_nodes(self, user_id: str) -> list["KnowledgeNode"]:
        """All of a user's nodes."""
        ...

    @abstractmethod
    async def create_node(self, node: "KnowledgeNode") -> "KnowledgeNode":
        """
        Persist a new node.

        Raises:
            ValueError: If the user already has a node with this label
        """
        ...

    @abstractmethod
    async def update_node(self, node: "KnowledgeNode") -> None:
        """Replace a stored node (matched by id)."""
        ...

    async def get_nodes(self, node_ids: list[str]) -> list["KnowledgeNode"]:
        """Get several nodes by id, skipping unknown ids."""
        nodes = []
        for node_id in node_ids:
            node = await self.get_node(node_id)
            if node is not None:
                nodes.append(node)
        return nodes

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_document(self, document: "Document") -> None:
        """Insert or replace a document (matched by id)."""
        ...

    @abstractmethod
    async def get_document(self, document_id: str) -> "Document | None":
        """Get a document by id."""
        ...

    @abstractmethod
    async def list_documents(self, user_id: str) -> list["Document"]:
        """All of a user's documents, oldest first."""
        ...

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        ...

    async def update_document(self, document: "Document") -> None:
        """Replace a stored document."""
        await self.save_document(document)

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_conversation(self, conversation: "Conversation") -> None:
        """Insert or replace a conversation (matched by id)."""
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> "Conversation | None":
        """Get a conversation by id."""
        ...

    @abstractmethod
    async def list_conversations(self, user_id: str) -> list["Conversation"]:
        """All of a user's conversations, most recently updated first."""
        ...

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """
        Delete a conversation and its messages.

        Returns False if the conversation did not exist.
        """
        ...

    @abstractmethod
    async def add_message(self, message: "Message") -> None:
        """Append a message to its conversation."""
        ...

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list["Message"]:
        """A conversation's messages, oldest first."""
        ...
