"""
Tests for LLM extraction and the document ingestion pipeline.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cortex_kg.config.settings import CortexConfig
from cortex_kg.exceptions import ParseError
from cortex_kg.graph.store import KnowledgeGraphStore
from cortex_kg.ingestion.extractor import LLMExtractor, parse_extraction
from cortex_kg.ingestion.pipeline import DocumentProcessor
from cortex_kg.storage.memory import InMemoryStorage
from cortex_kg.types import Document, ExtractionResult, NodeType, TypedEntity

EXTRACTION_JSON = """{
  "entities": [{"name": "Paris", "type": "topic"}, {"name": "France", "type": "organization"}],
  "summary": "Paris is the capital of France.",
  "key_points": ["Paris is a capital", "France is in Europe"]
}"""

# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_llm() -> MagicMock:
    """Create a mock LLM provider."""
    llm = MagicMock()
    llm.generate = AsyncMock(return_value=EXTRACTION_JSON)
    llm.model_name = "test-model"
    return llm


@pytest.fixture
def config() -> CortexConfig:
    """Create a test configuration."""
    return CortexConfig(nvidia_api_key="test", huggingface_api_key=None)


@pytest.fixture
def mock_extractor() -> MagicMock:
    """Create a mock extractor."""
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value=parse_extraction(EXTRACTION_JSON))
    return extractor


@pytest.fixture
def mock_summarizer() -> MagicMock:
    """Create a mock consensus summarizer."""
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(return_value="Consensus summary.")
    return summarizer


def make_document(content: str = "Paris is the capital of France and a lovely city.") -> Document:
    return Document(id="d1", user_id="u1", title="Trip notes", content=content)


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------


class TestParseExtraction:
    """Model reply parsing."""

    def test_plain_json(self) -> None:
        result = parse_extraction(EXTRACTION_JSON)

        assert [e.name for e in result.entities] == ["Paris", "France"]
        assert result.entities[0].type == NodeType.TOPIC
        assert result.summary == "Paris is the capital of France."
        assert len(result.key_points) == 2

    def test_fenced_json(self) -> None:
        reply = f"Here you go:\n```json\n{EXTRACTION_JSON}\n```\nHope this helps."
        assert len(parse_extraction(reply).entities) == 2

    def test_unknown_type_is_generic(self) -> None:
        reply = '{"entities": [{"name": "Thing", "type": "gizmo"}], "summary": "", "key_points": []}'
        result = parse_extraction(reply)
        assert result.entities == [TypedEntity(name="Thing", type=NodeType.ENTITY)]

    def test_bare_string_entities(self) -> None:
        reply = '{"entities": ["Paris", "", {"type": "topic"}], "summary": null, "key_points": ["a", null]}'
        result = parse_extraction(reply)

        assert [e.name for e in result.entities] == ["Paris"]
        assert result.summary == ""
        assert result.key_points == ["a"]

    def test_missing_fields_default(self) -> None:
        assert parse_extraction("{}") == ExtractionResult()

    @pytest.mark.parametrize(
        "reply",
        ["no json here", "{not json at all}", "[1, 2, 3]"],
    )
    def test_unparseable(self, reply: str) -> None:
        with pytest.raises(ParseError):
            parse_extraction(reply)


class TestLLMExtractor:
    """Extraction through a chat model."""

    @pytest.mark.asyncio
    async def test_extract(self, mock_llm: MagicMock) -> None:
        extractor = LLMExtractor(mock_llm)
        result = await extractor.extract("Paris is the capital of France.")

        assert len(result.entities) == 2
        call = mock_llm.generate.await_args
        assert "Paris is the capital of France." in call.args[0]
        assert call.kwargs["temperature"] == 0.1
        assert "JSON" in call.kwargs["system"]

    @pytest.mark.asyncio
    async def test_input_truncated(self, mock_llm: MagicMock) -> None:
        extractor = LLMExtractor(mock_llm, max_input_chars=5)
        await extractor.extract("abcdefghij")

        prompt = mock_llm.generate.await_args.args[0]
        assert "abcde" in prompt
        assert "abcdef" not in prompt

    @pytest.mark.asyncio
    async def test_bad_reply_raises(self, mock_llm: MagicMock) -> None:
        mock_llm.generate.return_value = "I could not find any entities."
        with pytest.raises(ParseError):
            await LLMExtractor(mock_llm).extract("text")


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------


class TestDocumentProcessor:
    """Summarize, extract, persist, link."""

    @pytest.mark.asyncio
    async def test_process(
        self,
        config: CortexConfig,
        mock_extractor: MagicMock,
        mock_summarizer: MagicMock,
    ) -> None:
        storage = InMemoryStorage()
        processor = DocumentProcessor(
            KnowledgeGraphStore(storage, config), mock_extractor, mock_summarizer
        )

        result = await processor.process(make_document())

        assert result.processed
        assert result.errors == []
        assert result.summary == "Consensus summary."
        assert result.entities == 2
        assert result.key_points == 2
        assert result.connections_created == 6

        stored = await storage.get_document("d1")
        assert stored is not None
        assert stored.summary == "Consensus summary."
        assert stored.entities == ["Paris", "France"]
        assert stored.tags == ["Paris", "France"]
        assert stored.fingerprint is not None

        labels = {n.label for n in await storage.list_nodes("u1")}
        assert labels == {"Paris", "France", "Trip notes"}

    @pytest.mark.asyncio
    async def test_placeholder_is_stored_not_processed(
        self, config: CortexConfig, mock_extractor: MagicMock
    ) -> None:
        storage = InMemoryStorage()
        processor = DocumentProcessor(KnowledgeGraphStore(storage, config), mock_extractor)

        result = await processor.process(make_document("[File: scan.pdf] could not extract text"))

        assert not result.processed
        mock_extractor.extract.assert_not_awaited()
        assert await storage.get_document("d1") is not None
        assert await storage.list_nodes("u1") == []

    @pytest.mark.asyncio
    async def test_summary_failure_keeps_extraction(
        self,
        config: CortexConfig,
        mock_extractor: MagicMock,
        mock_summarizer: MagicMock,
    ) -> None:
        """A failed summary falls back to the extraction's summary."""
        mock_summarizer.summarize.side_effect = RuntimeError("both models down")
        storage = InMemoryStorage()
        processor = DocumentProcessor(
            KnowledgeGraphStore(storage, config), mock_extractor, mock_summarizer
        )

        result = await processor.process(make_document())

        assert result.processed
        assert result.errors == ["summary: both models down"]
        assert result.summary == "Paris is the capital of France."

    @pytest.mark.asyncio
    async def test_extraction_failure(
        self,
        config: CortexConfig,
        mock_extractor: MagicMock,
        mock_summarizer: MagicMock,
    ) -> None:
        """Without entities the document keeps its summary but links nothing."""
        mock_extractor.extract.side_effect = ParseError("garbled")
        storage = InMemoryStorage()
        processor = DocumentProcessor(
            KnowledgeGraphStore(storage, config), mock_extractor, mock_summarizer
        )

        result = await processor.process(make_document())

        assert not result.processed
        assert result.errors == ["extraction: garbled"]
        stored = await storage.get_document("d1")
        assert stored is not None and stored.summary == "Consensus summary."
        assert await storage.list_nodes("u1") == []

    @pytest.mark.asyncio
    async def test_generated_prefix_stripped(
        self, config: CortexConfig, mock_extractor: MagicMock
    ) -> None:
        processor = DocumentProcessor(KnowledgeGraphStore(InMemoryStorage(), config), mock_extractor)
        await processor.process(
            make_document("[AI-Generated Content based on: a.pdf]\n\nParis is lovely in spring.")
        )
        assert mock_extractor.extract.await_args.args[0] == "Paris is lovely in spring."
