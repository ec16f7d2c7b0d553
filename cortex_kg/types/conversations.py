"""
Conversation Types

Stored chat turns. Each user's conversations are independent; a message
belongs to exactly one conversation.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from cortex_kg.types.agents import Source


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(BaseModel):
    """
    A user's conversation.

    Attributes:
        id: Unique identifier
        user_id: Owner
        title: First 80 characters of the opening message
        updated_at: Time of the last saved reply
    """

    id: str
    user_id: str
    title: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Message(BaseModel):
    """One turn of a conversation."""

    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str
    sources: list[Source] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
