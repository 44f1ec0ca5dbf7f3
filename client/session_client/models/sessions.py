"""Session and server status models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ServerStatus(str, Enum):
    """Last known reachability of the remote backend."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class HealthCheckResult(BaseModel):
    """Outcome of a single health check.

    ``stale`` is set when the persisted status was reset while the request
    was in flight; such a result wrote nothing and never signals a restart.
    """

    status: ServerStatus
    previous_status: ServerStatus
    checked_at: datetime
    restart_detected: bool = False
    stale: bool = False


class SessionSummary(BaseModel):
    """Summary of a persisted session for stats views."""

    id: str
    message_count: int = 0
    is_current: bool = False


class SessionStats(BaseModel):
    """Aggregate view over every persisted session."""

    total_sessions: int
    total_messages: int
    current_session: Optional[str] = None
    sessions: list[SessionSummary]

    @property
    def per_session_counts(self) -> dict[str, int]:
        return {s.id: s.message_count for s in self.sessions}
