"""
Parquet Storage

Local knowledge base on disk: one Parquet file per table.

    kb_path/
    ├── nodes.parquet
    ├── documents.parquet
    ├── conversations.parquet
    ├── messages.parquet
    └── metadata.json

Writes rewrite the whole table to a temp file and atomically rename it
into place while holding a file lock (.kb.lock), so concurrent processes
never observe a partial table. Reads are lock-free.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pyarrow as pa
import pyarrow.parquet as pq
from filelock import FileLock

from cortex_kg.storage.base import GraphStorage
from cortex_kg.types import Conversation, Document, KnowledgeNode, Message, Source

_Row = dict[str, Any]


class ParquetStorage(GraphStorage):
    """
    Parquet-backed GraphStorage.

    Args:
        kb_path: Knowledge base directory (created on initialize)
        lock_timeout: Seconds to wait for the write lock
    """

    SCHEMA_VERSION = "1.0.0"

    def __init__(self, kb_path: Path | str, lock_timeout: float = 30) -> None:
        self._kb_path = Path(kb_path)
        self._lock = FileLock(self._kb_path / ".kb.lock", timeout=lock_timeout)
        self._initialized = False

    @property
    def kb_path(self) -> Path:
        return self._kb_path

    async def initialize(self) -> None:
        if self._initialized:
            return

        def _init() -> None:
            self._kb_path.mkdir(parents=True, exist_ok=True)
            meta_path = self._kb_path / "metadata.json"
            if not meta_path.exists():
                metadata = {
                    "schema_version": self.SCHEMA_VERSION,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                }
                meta_path.write_text(json.dumps(metadata, indent=2))

        await asyncio.to_thread(_init)
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    # -------------------------------------------------------------------------
    # Schemas
    # -------------------------------------------------------------------------

    @staticmethod
    def _node_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("user_id", pa.string()),
            ("label", pa.string()),
            ("type", pa.string()),
            ("strength", pa.float64()),
            ("connections", pa.list_(pa.string())),
            ("description", pa.string()),
        ])

    @staticmethod
    def _document_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("user_id", pa.string()),
            ("title", pa.string()),
            ("content", pa.string()),
            ("summary", pa.string()),
            ("fingerprint", pa.list_(pa.float64())),
            ("domain", pa.string()),
            ("entities", pa.list_(pa.string())),
            ("key_points", pa.list_(pa.string())),
            ("tags", pa.list_(pa.string())),
            ("created_at", pa.string()),
            ("updated_at", pa.string()),
        ])

    @staticmethod
    def _conversation_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("user_id", pa.string()),
            ("title", pa.string()),
            ("created_at", pa.string()),
            ("updated_at", pa.string()),
        ])

    @staticmethod
    def _message_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("conversation_id", pa.string()),
            ("role", pa.string()),
            ("content", pa.string()),
            ("sources", pa.string()),
            ("created_at", pa.string()),
        ])

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _node_to_row(node: KnowledgeNode) -> _Row:
        return {
            "id": node.id,
            "user_id": node.user_id,
            "label": node.label,
            "type": node.type.value,
            "strength": node.strength,
            "connections": sorted(node.connections),
            "description": node.description,
        }

    @staticmethod
    def _row_to_node(row: _Row) -> KnowledgeNode:
        return KnowledgeNode(
            id=row["id"],
            user_id=row["user_id"],
            label=row["label"],
            type=row["type"],
            strength=row["strength"],
            connections=set(row["connections"] or []),
            description=row["description"] or "",
        )

    @staticmethod
    def _document_to_row(document: Document) -> _Row:
        return {
            "id": document.id,
            "user_id": document.user_id,
            "title": document.title,
            "content": document.content,
            "summary": document.summary,
            "fingerprint": document.fingerprint,
            "domain": document.domain,
            "entities": document.entities,
            "key_points": document.key_points,
            "tags": document.tags,
            "created_at": document.created_at.isoformat(),
            "updated_at": document.updated_at.isoformat(),
        }

    @staticmethod
    def _row_to_document(row: _Row) -> Document:
        return Document(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            content=row["content"] or "",
            summary=row["summary"],
            fingerprint=row["fingerprint"],
            domain=row["domain"] or "general",
            entities=row["entities"] or [],
            key_points=row["key_points"] or [],
            tags=row["tags"] or [],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _conversation_to_row(conversation: Conversation) -> _Row:
        return {
            "id": conversation.id,
            "user_id": conversation.user_id,
            "title": conversation.title,
            "created_at": conversation.created_at.isoformat(),
            "updated_at": conversation.updated_at.isoformat(),
        }

    @staticmethod
    def _row_to_conversation(row: _Row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _message_to_row(message: Message) -> _Row:
        return {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "role": message.role,
            "content": message.content,
            "sources": json.dumps([s.model_dump() for s in message.sources]),
            "created_at": message.created_at.isoformat(),
        }

    @staticmethod
    def _row_to_message(row: _Row) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"] or "",
            sources=[Source.model_validate(s) for s in json.loads(row["sources"] or "[]")],
            created_at=row["created_at"],
        )

    # -------------------------------------------------------------------------
    # Table I/O
    # -------------------------------------------------------------------------

    def _read_rows(self, table_name: str) -> list[_Row]:
        path = self._kb_path / f"{table_name}.parquet"
        if not path.exists():
            return []
        return pq.read_table(path).to_pylist()

    def _write_rows(self, table_name: str, rows: list[_Row], schema: pa.Schema) -> None:
        """Replace a table atomically. Caller holds the lock."""
        path = self._kb_path / f"{table_name}.parquet"
        table = pa.Table.from_pylist(rows, schema=schema)
        temp_path = path.with_suffix(".parquet.tmp")
        pq.write_table(table, temp_path, compression="zstd")
        temp_path.replace(path)  # Atomic on POSIX systems

    def _mutate(
        self,
        table_name: str,
        schema: pa.Schema,
        mutate: Callable[[list[_Row]], list[_Row]],
    ) -> None:
        with self._lock:
            rows = self._read_rows(table_name)
            self._write_rows(table_name, mutate(rows), schema)

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    async def get_node(self, node_id: str) -> KnowledgeNode | None:
        def _get() -> KnowledgeNode | None:
            for row in self._read_rows("nodes"):
                if row["id"] == node_id:
                    return self._row_to_node(row)
            return None

        return await asyncio.to_thread(_get)

    async def get_node_by_label(self, user_id: str, label: str) -> KnowledgeNode | None:
        def _get() -> KnowledgeNode | None:
            for row in self._read_rows("nodes"):
                if row["user_id"] == user_id and row["label"] == label:
                    return self._row_to_node(row)
            return None

        return await asyncio.to_thread(_get)

    async def get_nodes(self, node_ids: list[str]) -> list[KnowledgeNode]:
        wanted = set(node_ids)

        def _get() -> list[KnowledgeNode]:
            by_id = {
                row["id"]: self._row_to_node(row)
                for row in self._read_rows("nodes")
                if row["id"] in wanted
            }
            return [by_id[i] for i in node_ids if i in by_id]

        return await asyncio.to_thread(_get)

    async def list_nodes(self, user_id: str) -> list[KnowledgeNode]:
        def _list() -> list[KnowledgeNode]:
            return [
                self._row_to_node(row)
                for row in self._read_rows("nodes")
                if row["user_id"] == user_id
            ]

        return await asyncio.to_thread(_list)

    async def create_node(self, node: KnowledgeNode) -> KnowledgeNode:
        def _insert(rows: list[_Row]) -> list[_Row]:
            for row in rows:
                if row["user_id"] == node.user_id and row["label"] == node.label:
                    raise ValueError(
                        f"Node '{node.label}' already exists for user {node.user_id}"
                    )
            return [*rows, self._node_to_row(node)]

        await asyncio.to_thread(self._mutate, "nodes", self._node_schema(), _insert)
        return node

    async def update_node(self, node: KnowledgeNode) -> None:
        def _replace(rows: list[_Row]) -> list[_Row]:
            for i, row in enumerate(rows):
                if row["id"] == node.id:
                    rows[i] = self._node_to_row(node)
                    return rows
            raise KeyError(node.id)

        await asyncio.to_thread(self._mutate, "nodes", self._node_schema(), _replace)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def save_document(self, document: Document) -> None:
        new_row = self._document_to_row(document)

        def _upsert(rows: list[_Row]) -> list[_Row]:
            for i, row in enumerate(rows):
                if row["id"] == document.id:
                    rows[i] = new_row
                    return rows
            return [*rows, new_row]

        await asyncio.to_thread(self._mutate, "documents", self._document_schema(), _upsert)

    async def get_document(self, document_id: str) -> Document | None:
        def _get() -> Document | None:
            for row in self._read_rows("documents"):
                if row["id"] == document_id:
                    return self._row_to_document(row)
            return None

        return await asyncio.to_thread(_get)

    async def list_documents(self, user_id: str) -> list[Document]:
        def _list() -> list[Document]:
            documents = [
                self._row_to_document(row)
                for row in self._read_rows("documents")
                if row["user_id"] == user_id
            ]
            documents.sort(key=lambda d: d.created_at)
            return documents

        return await asyncio.to_thread(_list)

    async def delete_document(self, document_id: str) -> bool:
        deleted = False

        def _remove(rows: list[_Row]) -> list[_Row]:
            nonlocal deleted
            kept = [row for row in rows if row["id"] != document_id]
            deleted = len(kept) != len(rows)
            return kept

        await asyncio.to_thread(self._mutate, "documents", self._document_schema(), _remove)
        return deleted

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    async def save_conversation(self, conversation: Conversation) -> None:
        new_row = self._conversation_to_row(conversation)

        def _upsert(rows: list[_Row]) -> list[_Row]:
            for i, row in enumerate(rows):
                if row["id"] == conversation.id:
                    rows[i] = new_row
                    return rows
            return [*rows, new_row]

        await asyncio.to_thread(
            self._mutate, "conversations", self._conversation_schema(), _upsert
        )

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        def _get() -> Conversation | None:
            for row in self._read_rows("conversations"):
                if row["id"] == conversation_id:
                    return self._row_to_conversation(row)
            return None

        return await asyncio.to_thread(_get)

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        def _list() -> list[Conversation]:
            conversations = [
                self._row_to_conversation(row)
                for row in self._read_rows("conversations")
                if row["user_id"] == user_id
            ]
            conversations.sort(key=lambda c: c.updated_at, reverse=True)
            return conversations

        return await asyncio.to_thread(_list)

    async def delete_conversation(self, conversation_id: str) -> bool:
        deleted = False

        def _remove_messages(rows: list[_Row]) -> list[_Row]:
            return [row for row in rows if row["conversation_id"] != conversation_id]

        def _remove(rows: list[_Row]) -> list[_Row]:
            nonlocal deleted
            kept = [row for row in rows if row["id"] != conversation_id]
            deleted = len(kept) != len(rows)
            return kept

        # Messages first, then the conversation
        await asyncio.to_thread(
            self._mutate, "messages", self._message_schema(), _remove_messages
        )
        await asyncio.to_thread(
            self._mutate, "conversations", self._conversation_schema(), _remove
        )
        return deleted

    async def add_message(self, message: Message) -> None:
        new_row = self._message_to_row(message)
        await asyncio.to_thread(
            self._mutate, "messages", self._message_schema(), lambda rows: [*rows, new_row]
        )

    async def list_messages(self, conversation_id: str) -> list[Message]:
        def _list() -> list[Message]:
            messages = [
                self._row_to_message(row)
                for row in self._read_rows("messages")
                if row["conversation_id"] == conversation_id
            ]
            messages.sort(key=lambda m: m.created_at)
            return messages

        return await asyncio.to_thread(_list)
