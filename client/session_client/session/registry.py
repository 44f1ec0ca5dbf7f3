"""Registry of every session id that has ever been persisted."""

from __future__ import annotations

import logging

from session_client.storage.client_store import SESSION_LIST_KEY, ClientSessionStore

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Insertion-ordered set of session ids, stored as one JSON array."""

    def __init__(self, store: ClientSessionStore) -> None:
        self._store = store

    def list_all(self) -> list[str]:
        raw = self._store.get_json(SESSION_LIST_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Session registry is not a list, treating as empty")
            return []
        return [item for item in raw if isinstance(item, str)]

    def register(self, session_id: str) -> None:
        sessions = self.list_all()
        if session_id in sessions:
            return
        sessions.append(session_id)
        self._store.set_json(SESSION_LIST_KEY, sessions)

    def forget(self, session_id: str) -> None:
        sessions = self.list_all()
        if session_id not in sessions:
            return
        sessions.remove(session_id)
        if sessions:
            self._store.set_json(SESSION_LIST_KEY, sessions)
        else:
            self._store.remove(SESSION_LIST_KEY)

    def clear(self) -> None:
        self._store.remove(SESSION_LIST_KEY)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self.list_all()
