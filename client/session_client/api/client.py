"""HTTP client for the document-study backend.

Only the endpoints the session layer depends on are wrapped here:

- ``GET  /health``                              reachability probe
- ``GET  /api/chat/sessions/{id}/history``      server-side history
- ``POST /api/chat/message``                    send a chat turn
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from session_client.config import Settings, get_settings
from session_client.exceptions import BackendError
from session_client.models.messages import ChatReply, HistoryEntry

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    """Prefer the backend's ``detail`` field, like FastAPI error bodies."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


class BackendClient:
    """Thin async wrapper over ``httpx.AsyncClient``.

    Lifecycle:
        client = BackendClient()
        ...
        await client.close()     # or use ``async with BackendClient() as client``

    Pass ``http_client`` to reuse an existing ``AsyncClient`` (tests inject
    one backed by ``httpx.MockTransport``); it is then not closed here.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds,
        )

    @property
    def base_url(self) -> str:
        return self.settings.api_base_url.rstrip("/")

    def _api_url(self, path: str) -> str:
        return f"{self.base_url}{self.settings.api_prefix}{path}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendError(str(exc) or exc.__class__.__name__) from exc
        if not response.is_success:
            raise BackendError(_error_detail(response), status_code=response.status_code)
        return response

    async def check_health(self) -> dict[str, Any]:
        """Probe the health endpoint; raises ``BackendError`` when not healthy."""
        response = await self._request("GET", f"{self.base_url}{self.settings.health_path}")
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def get_history(self, session_id: str) -> list[HistoryEntry]:
        response = await self._request("GET", self._api_url(f"/chat/sessions/{session_id}/history"))
        try:
            body = response.json()
        except ValueError as exc:
            raise BackendError("History response is not valid JSON") from exc
        raw_messages = body.get("messages") if isinstance(body, dict) else None
        entries: list[HistoryEntry] = []
        for raw in raw_messages or []:
            try:
                entries.append(HistoryEntry.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed history entry for session %s", session_id)
        return entries

    async def send_message(self, message: str, session_id: str | None = None) -> ChatReply:
        payload = {"message": message, "session_id": session_id}
        response = await self._request("POST", self._api_url("/chat/message"), json=payload)
        try:
            return ChatReply.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise BackendError(f"Unexpected chat response: {exc}") from exc

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
