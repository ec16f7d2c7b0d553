"""
Tests for the intent classifier.

The classifier is a pure function of the query string, so these tests only
check which expert tags come back for representative utterances.
"""

import re

import pytest

from cortex_kg.query.intent import (
    DEFAULT_RULES,
    IntentClassifier,
    IntentRule,
    classify_intent,
)
from cortex_kg.types import ExpertType


class TestKnowledgeAlwaysFirst:
    """The knowledge expert is selected for every query."""

    @pytest.mark.parametrize(
        "query",
        [
            "",
            "hello",
            "What is a transformer?",
            "find a video about neural networks",
            "summarize my notes",
        ],
    )
    def test_knowledge_first(self, query: str) -> None:
        """knowledge is present and first."""
        intents = classify_intent(query)
        assert intents[0] == ExpertType.KNOWLEDGE

    def test_question_mark_query_includes_knowledge(self) -> None:
        """A plain question still consults the user's documents."""
        intents = classify_intent("Paris?")
        assert ExpertType.KNOWLEDGE in intents

    def test_no_duplicates(self) -> None:
        """Several cues for the same expert select it once."""
        intents = classify_intent("watch a youtube video tutorial")
        assert len(intents) == len(set(intents))
        assert intents.count(ExpertType.VIDEO) == 1


class TestVideoIntent:
    """Video cues."""

    def test_find_a_video(self) -> None:
        """Video requests select the video expert alongside knowledge."""
        intents = set(classify_intent("find a video about neural networks"))
        assert {ExpertType.KNOWLEDGE, ExpertType.VIDEO} <= intents

    def test_plural_and_case(self) -> None:
        """Cues match case-insensitively and in plural form."""
        assert ExpertType.VIDEO in classify_intent("Any good LECTURES on topology")
        assert ExpertType.VIDEO in classify_intent("python tutorials")

    def test_no_video_cue(self) -> None:
        """Ordinary text does not select video."""
        assert ExpertType.VIDEO not in classify_intent("my grocery list")


class TestSearchIntent:
    """Web search cues and the question-mark safety net."""

    @pytest.mark.parametrize(
        "query",
        [
            "what is quantum entanglement",
            "latest news on fusion",
            "explain backpropagation",
            "how to bake bread",
        ],
    )
    def test_search_cues(self, query: str) -> None:
        assert ExpertType.SEARCH in classify_intent(query)

    def test_trailing_question_mark(self) -> None:
        """A query ending with a question mark selects search."""
        assert ExpertType.SEARCH in classify_intent("Paris or Lyon?")

    def test_plain_statement_is_knowledge_only(self) -> None:
        """Nothing but the knowledge expert for cue-less statements."""
        assert classify_intent("notes on gardening") == (ExpertType.KNOWLEDGE,)


class TestSummarizeIntent:
    """Summarize cues."""

    def test_summarize(self) -> None:
        assert ExpertType.SUMMARIZE in classify_intent("summarize the meeting")

    def test_tldr(self) -> None:
        assert ExpertType.SUMMARIZE in classify_intent("tl;dr of the paper")

    def test_key_points(self) -> None:
        assert ExpertType.SUMMARIZE in classify_intent("key points of chapter two")


# -----------------------------------------------------------------------------
# Custom rule tables
# -----------------------------------------------------------------------------


class TestSafetyNet:
    """The question-mark safety net and the possessive rule."""

    def test_safety_net_adds_search(self) -> None:
        """With no tag rules, a question falls back to search."""
        classifier = IntentClassifier(rules=())
        assert classifier.classify("anything?") == (ExpertType.KNOWLEDGE, ExpertType.SEARCH)

    def test_possessive_suppresses_safety_net(self) -> None:
        """Questions about the user's own material stay local."""
        possessive = [r for r in DEFAULT_RULES if r.tag is None]
        classifier = IntentClassifier(rules=possessive)
        assert classifier.classify("anything in my notes?") == (ExpertType.KNOWLEDGE,)

    def test_no_question_mark(self) -> None:
        classifier = IntentClassifier(rules=())
        assert classifier.classify("anything") == (ExpertType.KNOWLEDGE,)


class TestCustomRules:
    """Rule tables are plain data."""

    def test_custom_rule(self) -> None:
        """A caller-supplied rule adds its tag."""
        rule = IntentRule(
            name="clips",
            tag=ExpertType.VIDEO,
            patterns=(re.compile(r"\bclips?\b", re.IGNORECASE),),
        )
        classifier = IntentClassifier(rules=[rule])
        assert classifier.classify("show me clips") == (ExpertType.KNOWLEDGE, ExpertType.VIDEO)

    def test_rule_order_is_tag_order(self) -> None:
        """Tags come back in rule order after knowledge."""
        intents = classify_intent("find a video tutorial and summarize it")
        assert intents == (
            ExpertType.KNOWLEDGE,
            ExpertType.VIDEO,
            ExpertType.SEARCH,
            ExpertType.SUMMARIZE,
        )
