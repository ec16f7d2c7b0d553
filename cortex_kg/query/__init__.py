"""
Query Pipeline

Multi-expert retrieval for a single query:

    intent -> experts (knowledge inline, search/video concurrent) -> AgentContext

Answer quality is backed by two secondary-model checks: consensus
summarization (ingestion) and fact-check validation (answers).
"""

from cortex_kg.query.consensus import ConsensusSummarizer
from cortex_kg.query.experts import (
    KnowledgeExpert,
    SearchExpert,
    VideoExpert,
    format_results,
    format_video_results,
)
from cortex_kg.query.intent import IntentClassifier, IntentRule, classify_intent
from cortex_kg.query.memory import PastReply, cross_conversation_context
from cortex_kg.query.orchestrator import Orchestrator, build_prompt, run_orchestration
from cortex_kg.query.validator import FactCheckValidator

__all__ = [
    "ConsensusSummarizer",
    "FactCheckValidator",
    "IntentClassifier",
    "IntentRule",
    "KnowledgeExpert",
    "Orchestrator",
    "PastReply",
    "SearchExpert",
    "VideoExpert",
    "build_prompt",
    "classify_intent",
    "cross_conversation_context",
    "format_results",
    "format_video_results",
    "run_orchestration",
]
