"""
Cross-conversation memory.

Earlier assistant replies from other conversations are scored against the
current query by keyword overlap; the best few are folded into the prompt
as extra context.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel

MEMORY_HEADER = "## Insights from Previous Conversations:"


class PastReply(BaseModel):
    """An assistant reply from another conversation."""

    conversation_title: str = "Previous chat"
    content: str


def cross_conversation_context(
    query: str,
    replies: Iterable[PastReply],
    *,
    top_k: int = 3,
    excerpt_chars: int = 500,
) -> str:
    """
    Build the memory block for a query.

    A reply scores one point per query word (longer than three characters)
    it contains. Replies scoring zero are dropped. Returns "" when nothing
    is relevant.
    """
    words = [w for w in query.lower().split() if len(w) > 3]
    if not words:
        return ""

    scored: list[tuple[int, PastReply]] = []
    for reply in replies:
        lower = reply.content.lower()
        score = sum(1 for w in words if w in lower)
        if score > 0:
            scored.append((score, reply))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    kept = [reply for _, reply in scored[:top_k]]
    if not kept:
        return ""

    blocks = [
        f'**From "{r.conversation_title}":**\n{r.content[:excerpt_chars]}' for r in kept
    ]
    return f"{MEMORY_HEADER}\n\n" + "\n\n".join(blocks)
