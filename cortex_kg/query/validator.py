"""
Fact-Check Validator

A second, independent chat model reviews an answer against the context it
was generated from. The reviewer must reply with one of two verdicts:

    VALIDATED
    ISSUES: <unsupported claims>

Only an explicit ISSUES verdict (without VALIDATED) changes the answer: a
fixed caution notice is appended. Anything else, including reviewer
failures, returns the answer unchanged.
"""

from __future__ import annotations

import logging

from cortex_kg.exceptions import ValidationInconclusive
from cortex_kg.providers.base import LLMProvider, build_messages
from cortex_kg.utils.telemetry import telemetry_stage

logger = logging.getLogger(__name__)

VALIDATED = "VALIDATED"
ISSUES = "ISSUES"

ANSWER_PROMPT_CHARS = 1500
CONTEXT_PROMPT_CHARS = 2000

CAUTION_NOTICE = (
    "\n\n> ⚠️ *Some claims in this response may need verification. "
    "Cross-reference with your source documents for accuracy.*"
)

VALIDATOR_SYSTEM_PROMPT = f"""You are a fact-checker. Given a question, an AI response, and source context, identify any claims in the response that are NOT supported by the provided context.
If the response is well-supported, reply: "{VALIDATED}"
If there are unsupported claims, reply: "{ISSUES}: [list the specific unsupported claims]"
Be brief."""


def parse_verdict(verdict: str) -> bool:
    """
    Interpret a reviewer reply.

    Returns:
        True if the answer stands, False if issues were reported

    Raises:
        ValidationInconclusive: If the reply carries neither verdict
    """
    if VALIDATED in verdict:
        return True
    if ISSUES in verdict:
        return False
    raise ValidationInconclusive(f"No verdict in reviewer reply: {verdict[:120]!r}")


class FactCheckValidator:
    """
    Args:
        reviewer: Secondary chat model, or None when not configured
    """

    def __init__(self, reviewer: LLMProvider | None = None) -> None:
        self._reviewer = reviewer

    @property
    def configured(self) -> bool:
        return self._reviewer is not None

    async def check(self, question: str, answer: str, context: str) -> bool:
        """
        Ask the reviewer for a verdict.

        Returns:
            True if the answer stands, False if issues were reported

        Raises:
            ValidationInconclusive: Reply matched neither verdict
            Exception: Whatever the reviewer raised
        """
        assert self._reviewer is not None
        with telemetry_stage("fact_check"):
            verdict = await self._reviewer.chat(
                build_messages(
                    f"Question: {question}\n\n"
                    f"AI Response: {answer[:ANSWER_PROMPT_CHARS]}\n\n"
                    f"Source Context: {context[:CONTEXT_PROMPT_CHARS]}",
                    system=VALIDATOR_SYSTEM_PROMPT,
                ),
                temperature=0.1,
                max_tokens=300,
            )
        supported = parse_verdict(verdict)
        if not supported:
            logger.warning(f"Fact-check found issues: {verdict}")
        return supported

    async def validate(self, question: str, answer: str, context: str) -> str:
        """
        Return the answer, with a caution notice appended if the reviewer
        reported unsupported claims.
        """
        if self._reviewer is None:
            return answer

        try:
            supported = await self.check(question, answer, context)
        except ValidationInconclusive as e:
            logger.info(f"Fact-check inconclusive: {e}")
            return answer
        except Exception as e:
            logger.warning(f"Fact-check validation failed: {e}")
            return answer

        return answer if supported else answer + CAUTION_NOTICE
