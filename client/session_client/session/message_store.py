"""Per-session message history persistence.

Each session's history is stored under ``chat-messages-<session_id>`` as a
JSON array of message objects::

    [
        {
            "id": "msg-1760870400000-k3j9x0q1a",
            "role": "user",
            "content": "What does chapter 2 say about entropy?",
            "sources": null,
            "timestamp": "2026-10-19T10:30:00Z"
        },
        ...
    ]

Saves replace the whole array; there is no incremental append.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from session_client.models.messages import Message
from session_client.session.registry import SessionRegistry
from session_client.storage.client_store import ClientSessionStore, messages_key

logger = logging.getLogger(__name__)

_messages_adapter = TypeAdapter(list[Message])


class MessageStore:
    """Save, load and clear message histories keyed by session id."""

    def __init__(self, store: ClientSessionStore, registry: SessionRegistry) -> None:
        self._store = store
        self._registry = registry

    def save(self, session_id: str, messages: Sequence[Message]) -> bool:
        payload = _messages_adapter.dump_json(list(messages)).decode("utf-8")
        if not self._store.set(messages_key(session_id), payload):
            logger.error("Failed to save messages for session %s", session_id)
            return False
        self._registry.register(session_id)
        logger.debug("Saved %d messages for session %s", len(messages), session_id)
        return True

    def load(self, session_id: str) -> list[Message]:
        raw = self._store.get(messages_key(session_id))
        if raw is None:
            logger.debug("No messages found for session %s", session_id)
            return []
        try:
            messages = _messages_adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Discarding malformed history for session %s: %d errors",
                session_id,
                exc.error_count(),
            )
            return []
        logger.debug("Loaded %d messages for session %s", len(messages), session_id)
        return messages

    def clear(self, session_id: str) -> bool:
        """Remove the history entry; the registry keeps the id."""
        cleared = self._store.remove(messages_key(session_id))
        if cleared:
            logger.info("Cleared session %s", session_id)
        return cleared

    def count(self, session_id: str) -> int:
        return len(self.load(session_id))
