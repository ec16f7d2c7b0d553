"""
Document Ingestion Pipeline

    1. Consensus summary and entity extraction run concurrently
    2. Results (summary, entities, key points, tags, fingerprint) are written
       back to the document
    3. Entities are folded into the user's graph

Content that is only a file placeholder or too short to be useful is stored
but not processed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from cortex_kg.graph.store import apply_extraction
from cortex_kg.types import Document, ExtractionResult, IngestResult
from cortex_kg.utils.text import is_processable, strip_generated_prefix

if TYPE_CHECKING:
    from cortex_kg.graph.store import KnowledgeGraphStore
    from cortex_kg.providers.base import Extractor
    from cortex_kg.query.consensus import ConsensusSummarizer

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """
    Processes stored documents into summaries and graph updates.

    Args:
        graph: Graph store (also provides storage and config)
        extractor: Entity/key-point extraction
        summarizer: Consensus summarizer; None keeps the extraction's summary
    """

    def __init__(
        self,
        graph: "KnowledgeGraphStore",
        extractor: "Extractor",
        summarizer: "ConsensusSummarizer | None" = None,
    ) -> None:
        self.graph = graph
        self.extractor = extractor
        self.summarizer = summarizer

    async def _summarize(self, text: str) -> str:
        if self.summarizer is None:
            return ""
        return await self.summarizer.summarize(text)

    async def process(self, document: Document) -> IngestResult:
        """
        Summarize, extract, persist, and link one document.

        Never raises for model failures; they are reported in
        IngestResult.errors.
        """
        start = time.perf_counter()
        result = IngestResult(document_id=document.id)
        config = self.graph.config

        if not is_processable(document.content, config.min_content_length):
            logger.info(f"Skipping document {document.id}: no processable content")
            await self.graph.storage.save_document(document)
            return result

        content = strip_generated_prefix(document.content)
        logger.info(f"Processing document {document.id}, content length: {len(content)}")

        summary_outcome, extraction_outcome = await asyncio.gather(
            self._summarize(content),
            self.extractor.extract(content),
            return_exceptions=True,
        )

        if isinstance(summary_outcome, BaseException):
            if isinstance(summary_outcome, asyncio.CancelledError):
                raise summary_outcome
            logger.warning(f"Summary failed for {document.id}: {summary_outcome}")
            result.errors.append(f"summary: {summary_outcome}")
            summary_outcome = ""

        if isinstance(extraction_outcome, BaseException):
            if isinstance(extraction_outcome, asyncio.CancelledError):
                raise extraction_outcome
            logger.error(f"Extraction failed for {document.id}: {extraction_outcome}")
            result.errors.append(f"extraction: {extraction_outcome}")
            extraction_outcome = ExtractionResult()

        entities = self.graph.sanitize_entities(extraction_outcome.entities)
        apply_extraction(
            document,
            extraction_outcome,
            entities,
            config.fingerprint_dimensions,
            summary=summary_outcome,
        )
        await self.graph.storage.save_document(document)

        result.summary = document.summary or ""
        result.entities = len(entities)
        result.key_points = len(document.key_points)

        if entities:
            update = await self.graph.ingest_entities(document.user_id, document, entities)
            result.nodes_touched = update.nodes_touched
            result.connections_created = update.connections_created

        result.processed = not result.errors or bool(entities)
        logger.info(
            f"Document {document.id} processed in {time.perf_counter() - start:.1f}s: "
            f"{result.entities} entities, {result.key_points} key points, "
            f"{result.connections_created} new connections"
        )
        return result
