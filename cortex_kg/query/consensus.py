"""
Consensus Summarizer

Summarizes text with two independent models and reconciles the results.

Decision table (after both calls settle):
    neither produced text   -> ""
    exactly one did         -> that summary, verbatim
    both did                -> one merge call on the primary model that keeps
                               only agreed facts; if the merge fails, the
                               primary summary
"""

from __future__ import annotations

import asyncio
import logging

from cortex_kg.providers.base import LLMProvider, SummarizationProvider
from cortex_kg.utils.telemetry import telemetry_stage

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a precise summarizer. Summarize the text in 2-3 sentences, "
    "keeping names, numbers, and conclusions. Do not add anything that is not in the text."
)

MERGE_SYSTEM_PROMPT = (
    "You are a fact-checker. Given two independent AI summaries of the same text, "
    "produce a single accurate summary. Keep ONLY facts that BOTH summaries agree on. "
    "If they contradict each other, state only what is certain. "
    "Be concise (2-3 sentences)."
)

MERGE_MAX_TOKENS = 300
MERGE_TEMPERATURE = 0.1


class ConsensusSummarizer:
    """
    Two-model summarizer.

    Args:
        primary: Main chat model; also performs the merge
        secondary: Independent summarization model, or None when not configured
        max_input_chars: Text passed to the primary summary call is truncated to this
    """

    def __init__(
        self,
        primary: LLMProvider,
        secondary: SummarizationProvider | None = None,
        *,
        max_input_chars: int = 8000,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._max_input_chars = max_input_chars

    async def _primary_summary(self, text: str) -> str:
        return await self._primary.generate(
            f"Summarize the following text:\n\n{text[: self._max_input_chars]}",
            system=SUMMARY_SYSTEM_PROMPT,
            temperature=0.3,
            max_tokens=MERGE_MAX_TOKENS,
        )

    async def _secondary_summary(self, text: str) -> str:
        if self._secondary is None:
            return ""
        return await self._secondary.summarize(text)

    async def summarize(self, text: str) -> str:
        """
        Consensus summary of text.

        Never raises for provider failures; returns "" when no model produced
        a summary.
        """
        with telemetry_stage("consensus_summary"):
            outcomes = await asyncio.gather(
                self._primary_summary(text),
                self._secondary_summary(text),
                return_exceptions=True,
            )

        summaries: list[str] = []
        for name, outcome in zip(("primary", "secondary"), outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"{name.capitalize()} summary failed: {outcome}")
                summaries.append("")
            else:
                summaries.append(outcome or "")

        first, second = summaries
        if not first.strip() and not second.strip():
            return ""
        if not second.strip():
            return first
        if not first.strip():
            return second

        return await self.merge(first, second)

    async def merge(self, first: str, second: str) -> str:
        """Reconcile two summaries; falls back to the first on failure."""
        try:
            with telemetry_stage("consensus_merge"):
                merged = await self._primary.generate(
                    f"Summary from Model A:\n{first}\n\n"
                    f"Summary from Model B:\n{second}\n\n"
                    "Produce a merged, fact-checked summary:",
                    system=MERGE_SYSTEM_PROMPT,
                    temperature=MERGE_TEMPERATURE,
                    max_tokens=MERGE_MAX_TOKENS,
                )
        except Exception as e:
            logger.warning(f"Summary merge failed, keeping primary summary: {e}")
            return first

        return merged if merged.strip() else first
