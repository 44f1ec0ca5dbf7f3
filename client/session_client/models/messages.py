"""Message models for the conversation history."""

import secrets
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def random_suffix(length: int = 9) -> str:
    """Return a short lowercase base-36 token."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def local_id(prefix: str = "msg") -> str:
    """Build a display key such as ``msg-1760870400000-k3j9x0q1a``."""
    return f"{prefix}-{int(time.time() * 1000)}-{random_suffix()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """One turn of a conversation, as persisted on the client.

    ``id`` is only a rendering key; two messages with identical role and
    content are still distinct entries in the history.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=local_id)
    role: MessageRole
    content: str
    sources: Optional[list[str]] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, sources: Optional[list[str]] = None) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content, sources=sources or [])

    @classmethod
    def error(cls, detail: str) -> "Message":
        """System message reporting a failed request."""
        return cls(
            id=local_id("error"),
            role=MessageRole.SYSTEM,
            content=f"Error: {detail}",
        )


class ChatReply(BaseModel):
    """Assistant reply returned by the chat endpoint."""

    model_config = ConfigDict(extra="ignore")

    response: str
    sources: Optional[list[str]] = None


class HistoryEntry(BaseModel):
    """A message as returned by the server-side history endpoint."""

    model_config = ConfigDict(extra="ignore")

    role: MessageRole
    content: str
    sources: Optional[list[str]] = None

    def to_message(self) -> Message:
        """Re-key for local display with a fresh id and timestamp."""
        return Message(
            id=local_id("server"),
            role=self.role,
            content=self.content,
            sources=self.sources,
        )
