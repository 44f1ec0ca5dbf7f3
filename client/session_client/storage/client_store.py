"""Shared access point to the durable key-value store.

One ``ClientSessionStore`` is constructed per application instance and handed
to every session component. It owns the persisted key layout and turns any
backend failure into "value absent" so storage problems degrade to
"no persistence this run" instead of breaking the conversation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from session_client.storage.kv_store import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

# Key layout, shared with the browser client so both read the same data.
CURRENT_SESSION_KEY = "current-chat-session-id"
MESSAGES_KEY_PREFIX = "chat-messages-"
SESSION_LIST_KEY = "chat-sessions-list"
SERVER_STATUS_KEY = "server-status"
LAST_SERVER_CHECK_KEY = "last-server-check"


def messages_key(session_id: str) -> str:
    return f"{MESSAGES_KEY_PREFIX}{session_id}"


class ClientSessionStore:
    """Failure-tolerant wrapper around a ``KeyValueStore``."""

    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self.backend: KeyValueStore = backend if backend is not None else InMemoryKeyValueStore()

    def get(self, key: str) -> str | None:
        try:
            return self.backend.get_item(key)
        except Exception as exc:
            logger.warning("Storage read failed for %s: %s", key, exc)
            return None

    def set(self, key: str, value: str) -> bool:
        try:
            self.backend.set_item(key, value)
        except Exception as exc:
            logger.warning("Storage write failed for %s: %s", key, exc)
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            self.backend.remove_item(key)
        except Exception as exc:
            logger.warning("Storage remove failed for %s: %s", key, exc)
            return False
        return True

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a JSON value; malformed or missing data yields ``default``."""
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning("Discarding malformed value under %s: %s", key, exc)
            return default

    def set_json(self, key: str, value: Any) -> bool:
        return self.set(key, json.dumps(value, ensure_ascii=False))
