"""Session lifecycle manager.

Composes session identity, the session registry, the message store and the
health monitor into the operations the conversation view calls:

- ``initialize()``        decide keep-or-invalidate, start polling
- ``start_new_session()`` drop the current history, mint a new id
- ``clear_session()``     drop one history, keep the id
- ``invalidate_all()``    wipe every session after a backend restart

Lifecycle:
    manager = SessionLifecycleManager(store, backend)
    session_id = await manager.initialize()   # starts polling
    ...
    manager.shutdown()                        # stops polling, keeps data
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from session_client.api.client import BackendClient
from session_client.config import Settings, get_settings
from session_client.models.messages import Message
from session_client.models.sessions import HealthCheckResult, SessionStats, SessionSummary
from session_client.session.health import HealthMonitor, PollingHandle
from session_client.session.identity import SessionIdentity
from session_client.session.message_store import MessageStore
from session_client.session.registry import SessionRegistry
from session_client.storage.client_store import ClientSessionStore

logger = logging.getLogger(__name__)

RestartListener = Callable[[str], Union[Awaitable[Any], Any]]


class SessionLifecycleManager:
    """Owns the current session and reconciles it with backend restarts."""

    def __init__(
        self,
        store: ClientSessionStore,
        backend: BackendClient,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.backend = backend
        self.identity = SessionIdentity(store)
        self.registry = SessionRegistry(store)
        self.message_store = MessageStore(store, self.registry)
        self.health = HealthMonitor(store, backend, self.settings)
        self._polling: Optional[PollingHandle] = None
        self._restart_listeners: list[RestartListener] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> str:
        """Return the session id to use, invalidating everything on restart."""
        logger.info("Initializing session manager")
        try:
            result = await self.health.check()
        except Exception as exc:
            logger.warning("Health check could not complete, keeping current session: %s", exc)
            session_id = self.identity.get_or_create()
        else:
            if result.restart_detected:
                self.invalidate_all()
            session_id = self.identity.get_or_create()

        self._start_polling()
        logger.info("Chat session initialized: %s", session_id)
        return session_id

    def _start_polling(self) -> None:
        if self._polling is not None and not self._polling.cancelled:
            self._polling.cancel()
        self._polling = self.health.start_polling(
            self.settings.poll_interval_seconds,
            on_result=self._on_poll_result,
        )

    @property
    def polling(self) -> Optional[PollingHandle]:
        return self._polling

    def stop_polling(self) -> None:
        if self._polling is not None and not self._polling.cancelled:
            self._polling.cancel()
        self._polling = None

    def shutdown(self) -> None:
        """Stop polling and release the scheduler. Persisted data is kept."""
        self.stop_polling()
        self.health.close()

    async def __aenter__(self) -> "SessionLifecycleManager":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Restart handling
    # ------------------------------------------------------------------

    def add_restart_listener(self, listener: RestartListener) -> None:
        """Register a callback receiving the fresh session id after a
        restart detected by periodic polling. Registering twice is a no-op."""
        if listener in self._restart_listeners:
            return
        self._restart_listeners.append(listener)

    def remove_restart_listener(self, listener: RestartListener) -> None:
        if listener in self._restart_listeners:
            self._restart_listeners.remove(listener)

    async def _on_poll_result(self, result: HealthCheckResult) -> None:
        if not result.restart_detected:
            return
        self.invalidate_all()
        session_id = self.identity.get_or_create()
        for listener in list(self._restart_listeners):
            outcome = listener(session_id)
            if inspect.isawaitable(outcome):
                await outcome

    def invalidate_all(self) -> int:
        """Clear every known session, the current pointer and the status.

        Safe to call repeatedly; a second call finds an empty registry.
        """
        sessions = self.registry.list_all()
        for session_id in sessions:
            self.message_store.clear(session_id)
            self.registry.forget(session_id)
        self.registry.clear()
        self.identity.reset()
        self.health.reset()
        logger.info("Cleared all %d chat sessions", len(sessions))
        return len(sessions)

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    def start_new_session(self) -> str:
        current = self.identity.current()
        if current:
            self.message_store.clear(current)
        session_id = self.identity.replace()
        logger.info("Started new session: %s", session_id)
        return session_id

    def clear_session(self, session_id: str) -> bool:
        return self.message_store.clear(session_id)

    def load_messages(self, session_id: str) -> list[Message]:
        return self.message_store.load(session_id)

    def save_messages(self, session_id: str, messages: Sequence[Message]) -> bool:
        return self.message_store.save(session_id, messages)

    async def load_history_from_server(self, session_id: str) -> list[Message]:
        """Fetch the backend's copy of a session's history.

        Raises ``BackendError`` when the request fails.
        """
        entries = await self.backend.get_history(session_id)
        messages = [entry.to_message() for entry in entries]
        logger.info("Loaded %d messages from server for session %s", len(messages), session_id)
        return messages

    def get_session_stats(self) -> SessionStats:
        current = self.identity.current()
        summaries = [
            SessionSummary(
                id=session_id,
                message_count=self.message_store.count(session_id),
                is_current=session_id == current,
            )
            for session_id in self.registry.list_all()
        ]
        return SessionStats(
            total_sessions=len(summaries),
            total_messages=sum(s.message_count for s in summaries),
            current_session=current,
            sessions=summaries,
        )
