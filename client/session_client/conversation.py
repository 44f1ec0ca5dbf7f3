"""Conversation controller: the in-memory message list and its persistence.

Holds what a chat view shows and keeps the durable store in step with it.
Use it as an async context manager so health polling is always stopped::

    async with ConversationController(manager, backend) as chat:
        await chat.send_message("Summarise chapter 3")
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from session_client.api.client import BackendClient
from session_client.exceptions import BackendError
from session_client.models.messages import Message
from session_client.session.lifecycle import SessionLifecycleManager

logger = logging.getLogger(__name__)


class ConversationController:
    """Chat state for one view, persisted through the lifecycle manager."""

    def __init__(self, lifecycle: SessionLifecycleManager, backend: BackendClient) -> None:
        self.lifecycle = lifecycle
        self.backend = backend
        self.session_id: Optional[str] = None
        self.messages: list[Message] = []
        self.last_error: Optional[str] = None
        self.is_loading = False
        self.mounted = False

    # ------------------------------------------------------------------
    # Mounting
    # ------------------------------------------------------------------

    async def mount(self) -> str:
        self.lifecycle.add_restart_listener(self._on_server_restart)
        try:
            session_id = await self.lifecycle.initialize()
        except Exception:
            logger.exception("Failed to initialize session, falling back to stored id")
            session_id = self.lifecycle.identity.get_or_create()
        self.session_id = session_id
        self.messages = self.lifecycle.load_messages(session_id)
        self.mounted = True
        return session_id

    def unmount(self) -> None:
        """Stop polling; the conversation stays persisted for the next mount."""
        self.lifecycle.remove_restart_listener(self._on_server_restart)
        self.lifecycle.shutdown()
        self.mounted = False
        logger.info("Chat session %s persisted for next mount", self.session_id)

    async def __aenter__(self) -> "ConversationController":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.unmount()

    def _on_server_restart(self, session_id: str) -> None:
        logger.info("Backend restarted, switching from %s to %s", self.session_id, session_id)
        self.session_id = session_id
        self.messages = []

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def _set_messages(self, messages: Sequence[Message]) -> None:
        self.messages = list(messages)
        if self.session_id and self.messages:
            self.lifecycle.save_messages(self.session_id, self.messages)

    async def send_message(self, text: str) -> Optional[Message]:
        """Send one user turn and return the message appended in reply.

        On failure the user's message is dropped again and a system-role
        ``Error: ...`` message takes its place; nothing is retried.
        """
        content = text.strip()
        if not content or not self.session_id:
            return None

        session_id = self.session_id
        user_message = Message.user(content)
        self._set_messages([*self.messages, user_message])
        self.last_error = None
        self.is_loading = True
        try:
            reply = await self.backend.send_message(content, session_id)
        except BackendError as exc:
            logger.error("Chat API error: %s", exc)
            self.last_error = str(exc)
            if self.session_id != session_id:
                return None
            remaining = [m for m in self.messages if m.id != user_message.id]
            error_message = Message.error(str(exc))
            self._set_messages([*remaining, error_message])
            return error_message
        finally:
            self.is_loading = False

        if self.session_id != session_id:
            logger.warning("Dropping reply for %s, session changed while waiting", session_id)
            return None
        assistant_message = Message.assistant(reply.response, reply.sources)
        self._set_messages([*self.messages, assistant_message])
        logger.debug("Received response (%d chars)", len(reply.response))
        return assistant_message

    def clear_history(self) -> None:
        if not self.session_id:
            return
        self.messages = []
        self.lifecycle.clear_session(self.session_id)

    def start_new_session(self) -> str:
        self.session_id = self.lifecycle.start_new_session()
        self.messages = []
        return self.session_id

    async def load_history_from_server(self) -> bool:
        """Replace the local list with the server's copy, when it has one."""
        if not self.session_id:
            return False
        self.is_loading = True
        try:
            messages = await self.lifecycle.load_history_from_server(self.session_id)
        except BackendError as exc:
            logger.error("Failed to load chat history from server: %s", exc)
            self.last_error = "Failed to load chat history from server"
            return False
        finally:
            self.is_loading = False
        if messages:
            self._set_messages(messages)
        else:
            logger.info("No messages found on server for %s", self.session_id)
        return True
