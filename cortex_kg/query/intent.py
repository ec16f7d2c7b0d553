"""
Intent Classifier

Maps one utterance to the set of experts that should run for it.

Classification is an ordered rule table: each rule names an expert tag and
a family of cue patterns. Every rule whose cues match adds its tag, so a
query can select several experts at once. `knowledge` is always selected
first. The possessive rule (cues such as "my notes") selects nothing by
itself; it only suppresses the question-mark safety net that otherwise adds
web search to plain questions.

The table is plain data so callers and tests can supply their own.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from cortex_kg.types import ExpertType


@dataclass(frozen=True)
class IntentRule:
    """One cue family."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    tag: ExpertType | None = None
    """Expert added on a match; None for rules that only inform other rules."""

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


POSSESSIVE_RULE = "possessive"

DEFAULT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        name="video",
        tag=ExpertType.VIDEO,
        patterns=_compile(
            r"\b(youtube|videos?|watch|tutorials?|lectures?|course|playlist)\b",
            r"\b(show me a video|find a video|video about|video on|video for)\b",
        ),
    ),
    IntentRule(
        name="search",
        tag=ExpertType.SEARCH,
        patterns=_compile(
            r"\b(search|find|look up|google|what is|who is|latest|current|news|when did|where is|how to)\b",
            r"\b(tell me about|explain|define|meaning of|definition)\b",
            r"\?\s*$",
        ),
    ),
    IntentRule(
        name="summarize",
        tag=ExpertType.SUMMARIZE,
        patterns=_compile(
            r"\b(summarize|summarise|summary|brief|overview|recap|tldr)\b",
            r"\btl;dr\b",
            r"\b(what does .+ say|key points|main ideas|highlights?)\b",
        ),
    ),
    IntentRule(
        name=POSSESSIVE_RULE,
        patterns=_compile(
            r"\b(my documents?|my notes|my files?|uploaded|in my vault|knowledge base|my .+ says)\b",
            r"\b(from my|according to my|in my|remember when)\b",
        ),
    ),
)


@dataclass
class IntentClassifier:
    """
    Rule-table intent classifier.

    Args:
        rules: Cue families evaluated in order
    """

    rules: Sequence[IntentRule] = field(default_factory=lambda: DEFAULT_RULES)

    def classify(self, query: str) -> tuple[ExpertType, ...]:
        """
        Classify a query.

        Returns:
            Deduplicated expert tags in rule order, `knowledge` first
        """
        tags: list[ExpertType] = [ExpertType.KNOWLEDGE]
        possessive = False

        for rule in self.rules:
            if not rule.matches(query):
                continue
            if rule.name == POSSESSIVE_RULE:
                possessive = True
            if rule.tag is not None and rule.tag not in tags:
                tags.append(rule.tag)

        # Plain questions still go to the web unless they ask about the user's own material
        if tags == [ExpertType.KNOWLEDGE] and "?" in query and not possessive:
            tags.append(ExpertType.SEARCH)

        return tuple(tags)


_default_classifier = IntentClassifier()


def classify_intent(query: str) -> tuple[ExpertType, ...]:
    """Classify with the default rule table."""
    return _default_classifier.classify(query)
