"""
Brain - Primary Entry Point

One user's knowledge twin: their documents, their graph, and the
multi-expert question answering on top of them.

    ask:             orchestrate experts -> prompt -> primary model -> fact-check
    ask_stream:      same, streamed (no fact-check)
    conversations:   stored turns; replies from other conversations feed memory
    add_document:    store + summarize + extract + link
    rebuild_graph:   re-derive the graph from every stored document
    visual_graph:    capped, bridged graph for display
    brief:           short status update over recent documents

Providers are built from configuration on first use unless injected.

Example:
    >>> async with Brain(ParquetStorage("./kb"), user_id="me") as brain:
    ...     await brain.add_document("Trip notes", text)
    ...     result = await brain.ask("What did I write about Paris?")
    ...     print(result.answer)

    # Or with sync API
    >>> brain = Brain(ParquetStorage("./kb"), user_id="me")
    >>> result = brain.ask_sync("What did I write about Paris?")
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from cortex_kg.graph.clustering import compute_visual_graph, graph_links
from cortex_kg.graph.store import KnowledgeGraphStore
from cortex_kg.ingestion.pipeline import DocumentProcessor
from cortex_kg.providers.base import ChatMessage
from cortex_kg.query.consensus import ConsensusSummarizer
from cortex_kg.query.memory import PastReply, cross_conversation_context
from cortex_kg.query.orchestrator import Orchestrator, build_prompt
from cortex_kg.query.validator import FactCheckValidator
from cortex_kg.types import (
    AgentContext,
    AnswerResult,
    Conversation,
    Document,
    GraphLink,
    IngestResult,
    KnowledgeNode,
    Message,
    RebuildResult,
    Source,
    StreamChunk,
    VisualGraph,
)
from cortex_kg.utils.telemetry import telemetry_stage

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig
    from cortex_kg.providers.base import Extractor, LLMProvider, SearchProvider
    from cortex_kg.providers.llm.huggingface import HuggingFaceProvider
    from cortex_kg.storage.base import GraphStorage

logger = logging.getLogger(__name__)

APOLOGY = (
    "I'm sorry, I couldn't generate a response right now. "
    "Please try again in a moment."
)

WELCOME_BRIEF = (
    "Welcome to Neural Cortex! Start by adding documents to build your knowledge "
    "base. Then ask your AI twin anything about them."
)

BRIEF_SYSTEM_PROMPT = (
    "You are Neural Cortex, a personal knowledge AI assistant. Generate a brief, "
    "helpful morning update in 3-4 sentences. Be encouraging and insightful. Mention "
    "the documents and suggest what to focus on today. Do not use markdown formatting."
)

HISTORY_MESSAGES = 10
CONVERSATION_TITLE_CHARS = 80
MEMORY_CONVERSATIONS = 5
MEMORY_REPLIES = 10
BRIEF_DOCUMENTS = 5


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class Brain:
    """
    A user's knowledge twin.

    Args:
        storage: Node and document persistence
        user_id: Owner of every document and node touched
        config: Optional configuration. Uses defaults if not provided.
        llm: Primary chat model (default: primary -> fallback chain from config)
        secondary: Secondary model for consensus and fact-checking
            (default: HuggingFace when a key is configured, else none)
        search: Web search (default: DuckDuckGo)
        extractor: Entity extraction (default: LLMExtractor on the primary model)
    """

    def __init__(
        self,
        storage: "GraphStorage",
        user_id: str,
        config: "CortexConfig | None" = None,
        *,
        llm: "LLMProvider | None" = None,
        secondary: "HuggingFaceProvider | None" = None,
        search: "SearchProvider | None" = None,
        extractor: "Extractor | None" = None,
    ) -> None:
        if config is None:
            from cortex_kg.config import CortexConfig

            config = CortexConfig()
        self._config = config
        self._storage = storage
        self._user_id = user_id

        self._llm = llm
        self._secondary = secondary
        self._search = search
        self._extractor = extractor

        self._orchestrator: Orchestrator | None = None
        self._validator: FactCheckValidator | None = None
        self._graph: KnowledgeGraphStore | None = None
        self._processor: DocumentProcessor | None = None
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Build providers and pipelines on first use."""
        if self._initialized:
            return

        await self._storage.initialize()

        if self._llm is None:
            from cortex_kg.providers.llm.fallback import FallbackLLMProvider

            self._llm = FallbackLLMProvider.from_config(self._config)

        if self._secondary is None and self._config.huggingface_configured:
            from cortex_kg.providers.llm.huggingface import HuggingFaceProvider

            self._secondary = HuggingFaceProvider(self._config)

        if self._search is None:
            from cortex_kg.providers.search.duckduckgo import DuckDuckGoSearchProvider

            self._search = DuckDuckGoSearchProvider(self._config)

        if self._extractor is None:
            from cortex_kg.ingestion.extractor import LLMExtractor

            self._extractor = LLMExtractor(self._llm)

        self._orchestrator = Orchestrator.from_config(self._config, self._search)
        self._validator = FactCheckValidator(self._secondary)
        self._graph = KnowledgeGraphStore(self._storage, self._config, self._extractor)
        self._processor = DocumentProcessor(
            self._graph,
            self._extractor,
            ConsensusSummarizer(self._llm, self._secondary),
        )
        self._initialized = True

    # === Lifecycle ===

    async def __aenter__(self) -> "Brain":
        await self._ensure_initialized()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release storage resources."""
        await self._storage.close()
        self._initialized = False

    # === Properties ===

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def config(self) -> "CortexConfig":
        return self._config

    @property
    def storage(self) -> "GraphStorage":
        return self._storage

    # === Query ===

    async def context(self, message: str) -> AgentContext:
        """Run the experts for a message over the user's documents."""
        await self._ensure_initialized()
        assert self._orchestrator is not None

        documents = await self._storage.list_documents(self._user_id)
        with telemetry_stage("orchestration"):
            return await self._orchestrator.run(message, documents)

    def _messages(
        self,
        message: str,
        context: AgentContext,
        history: Sequence[ChatMessage],
        past_replies: Sequence[PastReply],
        extra_context: str,
    ) -> list[ChatMessage]:
        memory = cross_conversation_context(message, past_replies)
        extra = "\n\n".join(block for block in (memory, extra_context) if block)

        messages: list[ChatMessage] = [
            {"role": "system", "content": build_prompt(context, extra)}
        ]
        messages.extend(list(history)[-HISTORY_MESSAGES:])
        messages.append({"role": "user", "content": message})
        return messages

    # === Conversation memory ===

    async def _owned_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None or conversation.user_id != self._user_id:
            return None
        return conversation

    async def _open_conversation(self, conversation_id: str | None, message: str) -> Conversation:
        """The requested conversation, or a new one titled after the message."""
        if conversation_id is not None:
            conversation = await self._owned_conversation(conversation_id)
            if conversation is not None:
                return conversation
            logger.warning(f"Conversation {conversation_id} not found, starting a new one")

        conversation = Conversation(
            id=str(uuid4()),
            user_id=self._user_id,
            title=message[:CONVERSATION_TITLE_CHARS],
        )
        await self._storage.save_conversation(conversation)
        return conversation

    async def _past_replies(self, exclude_id: str | None) -> list[PastReply]:
        """Recent assistant replies from the user's other conversations."""
        try:
            others = [
                c
                for c in await self._storage.list_conversations(self._user_id)
                if c.id != exclude_id
            ][:MEMORY_CONVERSATIONS]

            replies: list[tuple[Message, str]] = []
            for conversation in others:
                for stored in await self._storage.list_messages(conversation.id):
                    if stored.role == "assistant":
                        replies.append((stored, conversation.title))
        except Exception as e:
            logger.error(f"Cross-conversation lookup failed: {e}")
            return []

        replies.sort(key=lambda pair: pair[0].created_at, reverse=True)
        return [
            PastReply(conversation_title=title or "Previous chat", content=reply.content)
            for reply, title in replies[:MEMORY_REPLIES]
        ]

    async def _stored_history(self, conversation_id: str) -> list[ChatMessage]:
        stored = await self._storage.list_messages(conversation_id)
        return [{"role": m.role, "content": m.content} for m in stored[-HISTORY_MESSAGES:]]

    async def _prepare(
        self,
        message: str,
        conversation_id: str | None,
        history: Sequence[ChatMessage] | None,
        past_replies: Sequence[PastReply] | None,
        extra_context: str,
    ) -> tuple[AgentContext, Conversation, list[ChatMessage]]:
        """Run the experts, open the conversation, and save the user's turn."""
        context = await self.context(message)

        if past_replies is None:
            past_replies = await self._past_replies(conversation_id)
        conversation = await self._open_conversation(conversation_id, message)
        if history is None:
            history = await self._stored_history(conversation.id)

        await self._storage.add_message(
            Message(id=str(uuid4()), conversation_id=conversation.id, role="user", content=message)
        )
        messages = self._messages(message, context, history, past_replies, extra_context)
        return context, conversation, messages

    async def _save_reply(
        self,
        conversation: Conversation,
        content: str,
        sources: list[Source],
    ) -> None:
        await self._storage.add_message(
            Message(
                id=str(uuid4()),
                conversation_id=conversation.id,
                role="assistant",
                content=content,
                sources=sources,
            )
        )
        conversation.updated_at = datetime.now(timezone.utc)
        await self._storage.save_conversation(conversation)

    # === Answers ===

    async def ask(
        self,
        message: str,
        *,
        conversation_id: str | None = None,
        history: Sequence[ChatMessage] | None = None,
        past_replies: Sequence[PastReply] | None = None,
        extra_context: str = "",
        validate: bool = True,
    ) -> AnswerResult:
        """
        Answer a message from the user's knowledge, the web, and videos.

        The turn is saved to the conversation (a new one when
        conversation_id is missing or unknown).

        Args:
            message: The user's question
            conversation_id: Conversation to continue
            history: Earlier turns (default: the conversation's stored turns;
                the last 10 are used)
            past_replies: Assistant replies from other conversations
                (default: recent replies from the user's other conversations)
            extra_context: Additional prompt section
            validate: Fact-check the answer with the secondary model

        Returns:
            AnswerResult; always has an answer, an apology if the model failed
        """
        timing: dict[str, int] = {}

        start = time.perf_counter()
        context, conversation, messages = await self._prepare(
            message, conversation_id, history, past_replies, extra_context
        )
        timing["orchestration_ms"] = int((time.perf_counter() - start) * 1000)

        assert self._llm is not None and self._validator is not None

        start = time.perf_counter()
        try:
            with telemetry_stage("answer"):
                raw = await self._llm.chat(
                    messages,
                    temperature=self._config.answer_temperature,
                    max_tokens=self._config.answer_max_tokens,
                )
        except Exception as e:
            logger.error(f"Answer generation failed: {e}")
            return AnswerResult(
                answer=APOLOGY,
                sources=context.sources,
                experts_used=context.experts_used,
                timing=timing,
                conversation_id=conversation.id,
            )
        timing["generation_ms"] = int((time.perf_counter() - start) * 1000)

        answer = raw
        if validate and self._validator.configured:
            start = time.perf_counter()
            answer = await self._validator.validate(message, raw, context.combined_context())
            timing["validation_ms"] = int((time.perf_counter() - start) * 1000)

        await self._save_reply(conversation, answer, context.sources)

        return AnswerResult(
            answer=answer,
            sources=context.sources,
            experts_used=context.experts_used,
            flagged=answer != raw,
            timing=timing,
            conversation_id=conversation.id,
        )

    async def ask_stream(
        self,
        message: str,
        *,
        conversation_id: str | None = None,
        history: Sequence[ChatMessage] | None = None,
        past_replies: Sequence[PastReply] | None = None,
        extra_context: str = "",
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream an answer.

        Yields text chunks, then one final chunk with `done=True`, the
        sources, and the conversation id. If streaming fails before any
        text, falls back to a non-streamed answer. The full reply is saved
        once the stream ends.
        """
        context, conversation, messages = await self._prepare(
            message, conversation_id, history, past_replies, extra_context
        )
        assert self._llm is not None

        parts: list[str] = []
        try:
            async for chunk in self._llm.stream(
                messages,
                temperature=self._config.answer_temperature,
                max_tokens=self._config.answer_max_tokens,
            ):
                parts.append(chunk)
                yield StreamChunk(content=chunk)
        except Exception as e:
            if parts:
                raise
            logger.warning(f"Streaming failed, falling back to non-stream: {e}")
            try:
                answer = await self._llm.chat(
                    messages,
                    temperature=self._config.answer_temperature,
                    max_tokens=self._config.answer_max_tokens,
                )
                parts.append(answer)
            except Exception as err:
                logger.error(f"Answer generation failed: {err}")
                answer = APOLOGY
            yield StreamChunk(content=answer)

        reply = "".join(parts)
        if reply:
            await self._save_reply(conversation, reply, context.sources)

        yield StreamChunk(done=True, sources=context.sources, conversation_id=conversation.id)

    # === Conversations ===

    async def conversations(self) -> list[Conversation]:
        """The user's conversations, most recently updated first."""
        await self._ensure_initialized()
        return await self._storage.list_conversations(self._user_id)

    async def conversation_messages(self, conversation_id: str) -> list[Message]:
        """
        A conversation's messages, oldest first.

        Raises:
            KeyError: If the user has no such conversation
        """
        await self._ensure_initialized()
        if await self._owned_conversation(conversation_id) is None:
            raise KeyError(conversation_id)
        return await self._storage.list_messages(conversation_id)

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete one of the user's conversations and its messages."""
        await self._ensure_initialized()
        if await self._owned_conversation(conversation_id) is None:
            return False
        return await self._storage.delete_conversation(conversation_id)

    # === Documents ===

    async def add_document(
        self,
        title: str,
        content: str,
        *,
        domain: str = "general",
        process: bool = True,
    ) -> IngestResult:
        """Store a new document and (by default) process it into the graph."""
        document = Document(
            id=str(uuid4()),
            user_id=self._user_id,
            title=title,
            content=content,
            domain=domain,
        )
        if not process:
            await self._ensure_initialized()
            await self._storage.save_document(document)
            return IngestResult(document_id=document.id)
        return await self.ingest_document(document)

    async def ingest_document(self, document: Document) -> IngestResult:
        """Process a document (new or re-processed) into summary and graph."""
        await self._ensure_initialized()
        assert self._processor is not None

        if document.user_id != self._user_id:
            raise ValueError(f"Document {document.id} belongs to another user")
        return await self._processor.process(document)

    async def documents(self) -> list[Document]:
        await self._ensure_initialized()
        return await self._storage.list_documents(self._user_id)

    async def delete_document(self, document_id: str) -> bool:
        """Delete one of the user's documents. Graph nodes are kept."""
        await self._ensure_initialized()
        document = await self._storage.get_document(document_id)
        if document is None or document.user_id != self._user_id:
            return False
        return await self._storage.delete_document(document_id)

    # === Graph ===

    async def rebuild_graph(self) -> RebuildResult:
        await self._ensure_initialized()
        assert self._graph is not None
        return await self._graph.rebuild_graph(self._user_id)

    async def graph(self) -> tuple[list[KnowledgeNode], list[GraphLink]]:
        """All nodes and their deduplicated links."""
        await self._ensure_initialized()
        nodes = await self._storage.list_nodes(self._user_id)
        return nodes, graph_links(nodes)

    async def visual_graph(
        self,
        max_nodes: int | None = None,
        max_links_per_node: int | None = None,
    ) -> VisualGraph:
        if max_nodes is None:
            max_nodes = self._config.graph_max_nodes
        if max_links_per_node is None:
            max_links_per_node = self._config.graph_max_links_per_node

        nodes, links = await self.graph()
        return compute_visual_graph(
            nodes,
            links,
            max_nodes=max_nodes,
            max_links_per_node=max_links_per_node,
        )

    # === Overview ===

    async def stats(self) -> dict[str, int]:
        await self._ensure_initialized()
        documents, nodes = await asyncio.gather(
            self._storage.list_documents(self._user_id),
            self._storage.list_nodes(self._user_id),
        )
        return {"documents": len(documents), "nodes": len(nodes)}

    async def brief(self) -> str:
        """A few sentences on recent documents and what to focus on."""
        await self._ensure_initialized()
        assert self._llm is not None

        documents = await self._storage.list_documents(self._user_id)
        if not documents:
            return WELCOME_BRIEF
        node_count = len(await self._storage.list_nodes(self._user_id))

        recent = sorted(documents, key=lambda d: d.created_at, reverse=True)[:BRIEF_DOCUMENTS]
        listing = "\n".join(f"- {d.title}: {d.summary or 'Processing...'}" for d in recent)

        try:
            with telemetry_stage("brief"):
                return await self._llm.generate(
                    f"Here are my recent documents:\n{listing}\n\n"
                    f"Total stats: {len(documents)} documents, {node_count} knowledge nodes.\n\n"
                    "Generate a concise morning brief for me.",
                    system=BRIEF_SYSTEM_PROMPT,
                    temperature=0.7,
                    max_tokens=250,
                )
        except Exception as e:
            logger.error(f"Failed to generate brief: {e}")
            return (
                f"You have {_plural(len(documents), 'document')} and "
                f"{_plural(node_count, 'knowledge node')} in your brain. "
                "Add documents or ask a question to explore your knowledge."
            )

    # === Sync wrappers ===

    def ask_sync(self, message: str, **kwargs: Any) -> AnswerResult:
        """Sync wrapper for ask."""
        return asyncio.run(self.ask(message, **kwargs))

    def add_document_sync(self, title: str, content: str, **kwargs: Any) -> IngestResult:
        """Sync wrapper for add_document."""
        return asyncio.run(self.add_document(title, content, **kwargs))

    def rebuild_graph_sync(self) -> RebuildResult:
        """Sync wrapper for rebuild_graph."""
        return asyncio.run(self.rebuild_graph())

    def visual_graph_sync(self, **kwargs: Any) -> VisualGraph:
        """Sync wrapper for visual_graph."""
        return asyncio.run(self.visual_graph(**kwargs))
