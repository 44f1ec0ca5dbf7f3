"""Exception types raised by the session client."""

from __future__ import annotations


class SessionClientError(Exception):
    """Base class for all session client errors."""


class StorageError(SessionClientError):
    """A durable key-value backend could not complete a read or write."""


class BackendError(SessionClientError):
    """The remote backend rejected a request or could not be reached.

    ``status_code`` is ``None`` for transport failures (connection refused,
    DNS errors, timeouts).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message
