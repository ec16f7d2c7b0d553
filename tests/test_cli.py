"""
Tests for the command-line interface.

Only commands that need no model credentials are invoked.
"""

import asyncio
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cortex_kg.cli import app
from cortex_kg.storage.parquet import ParquetStorage
from cortex_kg.types import Conversation, Document, KnowledgeNode, Message, NodeType

runner = CliRunner()


@pytest.fixture
def kb(tmp_path: Path) -> Path:
    """A small knowledge base on disk: one document, two linked nodes."""
    path = tmp_path / "kb"

    async def _seed() -> None:
        async with ParquetStorage(path) as storage:
            await storage.save_document(
                Document(id="d1", user_id="local", title="Trip notes", content="Paris", summary="s")
            )
            await storage.create_node(
                KnowledgeNode(
                    id="n1", user_id="local", label="Paris", type=NodeType.TOPIC,
                    strength=2.0, connections={"n2"},
                )
            )
            await storage.create_node(
                KnowledgeNode(id="n2", user_id="local", label="France", connections={"n1"})
            )

    asyncio.run(_seed())
    return path


class TestCli:
    """Credential-free commands."""

    def test_info(self, kb: Path) -> None:
        result = runner.invoke(app, ["info", "--kb", str(kb)])

        assert result.exit_code == 0
        assert "Documents" in result.output
        assert "Connections" in result.output

    def test_graph(self, kb: Path) -> None:
        result = runner.invoke(app, ["graph", "--kb", str(kb)])

        assert result.exit_code == 0
        assert "Paris" in result.output
        assert "France" in result.output
        assert "1 links, 0 bridges" in result.output

    def test_add_empty_directory(self, tmp_path: Path) -> None:
        """A directory without matching files exits before any model is built."""
        notes = tmp_path / "notes"
        notes.mkdir()

        result = runner.invoke(app, ["add", str(notes), "--kb", str(tmp_path / "kb")])

        assert result.exit_code == 0
        assert "No files matching" in result.output


@pytest.fixture
def chats(tmp_path: Path) -> Path:
    """A knowledge base holding one local conversation and one from another user."""
    path = tmp_path / "kb"

    async def _seed() -> None:
        async with ParquetStorage(path) as storage:
            await storage.save_conversation(Conversation(id="c1", user_id="local", title="Trip to Paris"))
            await storage.save_conversation(Conversation(id="c2", user_id="other", title="Not mine"))
            await storage.add_message(
                Message(id="m1", conversation_id="c1", role="user", content="Where to go?")
            )
            await storage.add_message(
                Message(id="m2", conversation_id="c1", role="assistant", content="The Louvre.")
            )

    asyncio.run(_seed())
    return path


class TestConversationsCommand:
    """Listing and deleting stored conversations."""

    def test_lists_own_conversations(self, chats: Path) -> None:
        result = runner.invoke(app, ["conversations", "--kb", str(chats)])

        assert result.exit_code == 0
        assert "Trip to Paris" in result.output
        assert "Not mine" not in result.output

    def test_empty(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["conversations", "--kb", str(tmp_path / "kb")])

        assert result.exit_code == 0
        assert "No conversations yet" in result.output

    def test_delete(self, chats: Path) -> None:
        result = runner.invoke(app, ["conversations", "--kb", str(chats), "--delete", "c1"])

        assert result.exit_code == 0
        assert "Deleted conversation" in result.output

        listed = runner.invoke(app, ["conversations", "--kb", str(chats)])
        assert "No conversations yet" in listed.output

    def test_delete_foreign_conversation(self, chats: Path) -> None:
        """Another user's conversation is reported as missing and left alone."""
        result = runner.invoke(app, ["conversations", "--kb", str(chats), "--delete", "c2"])

        assert result.exit_code == 1
        assert "Conversation not found" in result.output

        other = runner.invoke(app, ["conversations", "--kb", str(chats), "--user", "other"])
        assert "Not mine" in other.output
