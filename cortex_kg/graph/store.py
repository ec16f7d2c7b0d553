"""
Knowledge Graph Store

Node and edge lifecycle for a user's entity graph.

Nodes:
    - One node per (user, label). Seeing a label again strengthens its node
      (capped) and may promote its type from the generic `entity`.
    - Every document has a `document` node keyed by its title.

Edges:
    - Entities extracted from the same document are linked to each other
      and to the document node. Connections are stored on both endpoints
      and merged by set union, so they stay symmetric; self-loops are never
      written.

Writes are fault-isolated per node: one failing node is logged and skipped
without aborting the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from cortex_kg.types import (
    GENERIC_NODE_TYPE,
    Document,
    ExtractionResult,
    GraphUpdate,
    KnowledgeNode,
    NodeType,
    RebuildResult,
    TypedEntity,
)
from cortex_kg.utils.fingerprint import fingerprint
from cortex_kg.utils.text import clean_label, is_processable, strip_generated_prefix

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig
    from cortex_kg.providers.base import Extractor
    from cortex_kg.storage.base import GraphStorage

logger = logging.getLogger(__name__)

ENTITY_STRENGTH = 1.0
DOCUMENT_STRENGTH = 2.0
TAG_COUNT = 5


class KnowledgeGraphStore:
    """
    Graph maintenance over a GraphStorage.

    Args:
        storage: Persistence for nodes and documents
        config: Strength increment/cap and label limits
        extractor: Used by rebuild_graph for documents without stored entities
    """

    def __init__(
        self,
        storage: "GraphStorage",
        config: "CortexConfig | None" = None,
        extractor: "Extractor | None" = None,
    ) -> None:
        if config is None:
            from cortex_kg.config import CortexConfig

            config = CortexConfig()
        self.storage = storage
        self.config = config
        self.extractor = extractor

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    async def upsert_entity_node(
        self,
        user_id: str,
        label: str,
        node_type: NodeType | str = GENERIC_NODE_TYPE,
    ) -> tuple[KnowledgeNode, bool]:
        """
        Create or strengthen the node for a label.

        Returns:
            (node, created)
        """
        node_type = NodeType.coerce(node_type)
        existing = await self.storage.get_node_by_label(user_id, label)

        if existing is None:
            node = KnowledgeNode(
                id=str(uuid4()),
                user_id=user_id,
                label=label,
                type=node_type,
                strength=ENTITY_STRENGTH,
                description="Extracted from document",
            )
            await self.storage.create_node(node)
            logger.info(f"Created node: '{label}' ({node_type.value})")
            return node, True

        existing.strength = min(
            existing.strength + self.config.strength_increment,
            self.config.max_strength,
        )
        if existing.type == GENERIC_NODE_TYPE and node_type != GENERIC_NODE_TYPE:
            existing.type = node_type
        await self.storage.update_node(existing)
        return existing, False

    def document_label(self, document: Document) -> str:
        """Label of a document's node: its title, or a short id stand-in."""
        title = document.title.strip() or f"Document {document.id[:8]}"
        return clean_label(title, self.config.max_label_length)

    async def upsert_document_node(self, user_id: str, title: str) -> tuple[KnowledgeNode, bool]:
        """
        Get or create the `document` node for a title.

        Returns:
            (node, created)
        """
        label = clean_label(title, self.config.max_label_length)
        existing = await self.storage.get_node_by_label(user_id, label)
        if existing is not None:
            return existing, False

        node = KnowledgeNode(
            id=str(uuid4()),
            user_id=user_id,
            label=label,
            type=NodeType.DOCUMENT,
            strength=DOCUMENT_STRENGTH,
            description="Source document",
        )
        await self.storage.create_node(node)
        return node, True

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    async def link_cooccurring(
        self,
        entity_node_ids: Sequence[str],
        document_node_id: str | None = None,
    ) -> int:
        """
        Link a batch of entities to each other and to their document node.

        Each entity gains every other entity of the batch plus the document
        node; the document node gains every entity.

        Returns:
            Number of connection entries added across all nodes
        """
        batch = list(dict.fromkeys(entity_node_ids))
        added = 0

        for node_id in batch:
            wanted = {other for other in batch if other != node_id}
            if document_node_id is not None and document_node_id != node_id:
                wanted.add(document_node_id)
            added += await self._add_connections(node_id, wanted)

        if document_node_id is not None:
            wanted = {node_id for node_id in batch if node_id != document_node_id}
            added += await self._add_connections(document_node_id, wanted)

        return added

    async def _add_connections(self, node_id: str, wanted: set[str]) -> int:
        """Union wanted into a node's connections. Failures are logged, not raised."""
        try:
            node = await self.storage.get_node(node_id)
            if node is None:
                logger.error(f"Cannot link missing node {node_id}")
                return 0
            new = wanted - node.connections - {node_id}
            if not new:
                return 0
            node.connections |= new
            await self.storage.update_node(node)
            return len(new)
        except Exception as e:
            logger.error(f"Failed to update connections for node {node_id}: {e}")
            return 0

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def sanitize_entities(self, entities: Sequence[TypedEntity]) -> list[TypedEntity]:
        """Trim and truncate names, drop empties and repeats (first type wins)."""
        seen: set[str] = set()
        clean: list[TypedEntity] = []
        for entity in entities:
            name = clean_label(entity.name, self.config.max_label_length)
            if not name or name in seen:
                continue
            seen.add(name)
            clean.append(TypedEntity(name=name, type=entity.type))
        return clean

    async def ingest_entities(
        self,
        user_id: str,
        document: Document,
        entities: Sequence[TypedEntity],
    ) -> GraphUpdate:
        """Upsert a document's entities and its document node, then link them."""
        update = GraphUpdate()
        entity_ids: list[str] = []

        for entity in self.sanitize_entities(entities):
            try:
                node, created = await self.upsert_entity_node(user_id, entity.name, entity.type)
            except Exception as e:
                logger.error(f"Failed to create/update node '{entity.name}': {e}")
                continue
            entity_ids.append(node.id)
            update.nodes_created += int(created)

        update.nodes_touched = len(entity_ids)
        logger.info(
            f"Created/updated {len(entity_ids)}/{len(entities)} knowledge nodes "
            f"for '{document.title}'"
        )
        if not entity_ids:
            return update

        try:
            doc_node, created = await self.upsert_document_node(
                user_id, self.document_label(document)
            )
            update.nodes_created += int(created)
            update.document_node_id = doc_node.id
        except Exception as e:
            logger.error(f"Failed to create document node for '{document.title}': {e}")

        update.connections_created = await self.link_cooccurring(
            entity_ids, update.document_node_id
        )
        return update

    async def ingest_extraction(
        self,
        user_id: str,
        document: Document,
        extraction: ExtractionResult,
    ) -> GraphUpdate:
        """Fold an extraction result for a document into the graph."""
        return await self.ingest_entities(user_id, document, extraction.entities)

    # -------------------------------------------------------------------------
    # Rebuild
    # -------------------------------------------------------------------------

    async def rebuild_graph(self, user_id: str) -> RebuildResult:
        """
        Re-derive the graph from all of a user's documents.

        Stored entities are reused; documents without them are extracted
        again and the results written back. A document whose extraction
        fails is skipped for this pass.
        """
        result = RebuildResult()

        for document in await self.storage.list_documents(user_id):
            if not is_processable(document.content, self.config.min_content_length):
                continue

            entities = [TypedEntity(name=name) for name in document.entities]
            entities = self.sanitize_entities(entities)

            if not entities:
                if self.extractor is None:
                    logger.debug(f"No extractor; skipping '{document.title}'")
                    continue
                logger.info(f"Document '{document.title}' has no entities, running extraction")
                try:
                    entities = await self._extract_into(document)
                except Exception as e:
                    logger.error(f"Extraction failed for '{document.title}': {e}")
                    continue

            if not entities:
                continue
            result.documents_processed += 1

            update = await self.ingest_entities(user_id, document, entities)
            result.nodes_created += update.nodes_created
            result.connections_created += update.connections_created

        logger.info(
            f"Graph rebuilt: {result.nodes_created} new nodes, "
            f"{result.connections_created} new connections "
            f"from {result.documents_processed} documents"
        )
        return result

    async def _extract_into(self, document: Document) -> list[TypedEntity]:
        """Run extraction on a document and persist what it produced."""
        assert self.extractor is not None
        content = strip_generated_prefix(document.content)
        extraction = await self.extractor.extract(content)

        entities = self.sanitize_entities(extraction.entities)
        apply_extraction(document, extraction, entities, self.config.fingerprint_dimensions)
        await self.storage.update_document(document)
        logger.info(f"Extracted {len(entities)} entities from '{document.title}'")
        return entities


def apply_extraction(
    document: Document,
    extraction: ExtractionResult,
    entities: Sequence[TypedEntity],
    dimensions: int,
    summary: str | None = None,
) -> None:
    """
    Write extraction output onto a document in place.

    The summary argument wins over the extraction's summary; an existing
    document summary is kept when neither provides one.
    """
    names = [e.name for e in entities]
    document.summary = summary or document.summary or extraction.summary or None
    document.entities = names
    document.key_points = list(extraction.key_points)
    document.tags = names[:TAG_COUNT]
    document.fingerprint = fingerprint(strip_generated_prefix(document.content), dimensions)
    document.updated_at = datetime.now(timezone.utc)
