"""
In-memory storage.

Dictionary-backed GraphStorage for tests and short-lived sessions. Stored
models are copied on the way in and out so callers never share state with
the store.
"""

from cortex_kg.storage.base import GraphStorage
from cortex_kg.types import Conversation, Document, KnowledgeNode, Message


class InMemoryStorage(GraphStorage):
    """GraphStorage held in process memory."""

    def __init__(self) -> None:
        self._nodes: dict[str, KnowledgeNode] = {}
        self._documents: dict[str, Document] = {}
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}

    async def get_node(self, node_id: str) -> KnowledgeNode | None:
        node = self._nodes.get(node_id)
        return node.model_copy(deep=True) if node else None

    async def get_node_by_label(self, user_id: str, label: str) -> KnowledgeNode | None:
        for node in self._nodes.values():
            if node.user_id == user_id and node.label == label:
                return node.model_copy(deep=True)
        return None

    async def list_nodes(self, user_id: str) -> list[KnowledgeNode]:
        return [n.model_copy(deep=True) for n in self._nodes.values() if n.user_id == user_id]

    async def create_node(self, node: KnowledgeNode) -> KnowledgeNode:
        if await self.get_node_by_label(node.user_id, node.label) is not None:
            raise ValueError(f"Node '{node.label}' already exists for user {node.user_id}")
        self._nodes[node.id] = node.model_copy(deep=True)
        return node

    async def update_node(self, node: KnowledgeNode) -> None:
        if node.id not in self._nodes:
            raise KeyError(node.id)
        self._nodes[node.id] = node.model_copy(deep=True)

    async def save_document(self, document: Document) -> None:
        self._documents[document.id] = document.model_copy(deep=True)

    async def get_document(self, document_id: str) -> Document | None:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    async def list_documents(self, user_id: str) -> list[Document]:
        documents = [d for d in self._documents.values() if d.user_id == user_id]
        documents.sort(key=lambda d: d.created_at)
        return [d.model_copy(deep=True) for d in documents]

    async def delete_document(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None

    async def save_conversation(self, conversation: Conversation) -> None:
        self._conversations[conversation.id] = conversation.model_copy(deep=True)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        conversations = [c for c in self._conversations.values() if c.user_id == user_id]
        conversations.sort(key=lambda c: c.updated_at, reverse=True)
        return [c.model_copy(deep=True) for c in conversations]

    async def delete_conversation(self, conversation_id: str) -> bool:
        self._messages.pop(conversation_id, None)
        return self._conversations.pop(conversation_id, None) is not None

    async def add_message(self, message: Message) -> None:
        self._messages.setdefault(message.conversation_id, []).append(
            message.model_copy(deep=True)
        )

    async def list_messages(self, conversation_id: str) -> list[Message]:
        messages = sorted(self._messages.get(conversation_id, []), key=lambda m: m.created_at)
        return [m.model_copy(deep=True) for m in messages]
