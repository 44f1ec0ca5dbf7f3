"""Current-session pointer management."""

from __future__ import annotations

import logging

from session_client.models.messages import local_id
from session_client.storage.client_store import CURRENT_SESSION_KEY, ClientSessionStore

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Mint an identifier such as ``session-1760870400000-k3j9x0q1a``."""
    return local_id("session")


class SessionIdentity:
    """Reads and writes the single "current" session identifier."""

    def __init__(self, store: ClientSessionStore) -> None:
        self._store = store

    def current(self) -> str | None:
        return self._store.get(CURRENT_SESSION_KEY)

    def get_or_create(self) -> str:
        session_id = self.current()
        if session_id:
            logger.debug("Using existing session: %s", session_id)
            return session_id
        session_id = new_session_id()
        self._store.set(CURRENT_SESSION_KEY, session_id)
        logger.info("Created new chat session: %s", session_id)
        return session_id

    def replace(self) -> str:
        """Point at a brand-new identifier; message entries are left alone."""
        previous = self.current()
        session_id = new_session_id()
        while session_id == previous:
            session_id = new_session_id()
        self._store.set(CURRENT_SESSION_KEY, session_id)
        logger.info("Replaced session %s with %s", previous, session_id)
        return session_id

    def reset(self) -> None:
        self._store.remove(CURRENT_SESSION_KEY)
