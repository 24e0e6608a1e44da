"""Exception types raised by the console and its collaborators."""

from __future__ import annotations


class ConsoleError(Exception):
    """Base class for every failure surfaced by the console."""


class AuthError(ConsoleError):
    """Identity failure: bad credentials, duplicate account, collaborator outage.

    ``reason`` is a short machine-readable tag used by the HTTP layer to pick a
    status code; the message is the human-readable text shown in notices.
    """

    def __init__(self, message: str, *, reason: str = "auth") -> None:
        super().__init__(message)
        self.reason = reason


class QueryError(ConsoleError):
    """A scoped read against the document store failed."""


class WriteError(ConsoleError):
    """A write against the document store failed or targeted a record outside the owned set."""

    def __init__(self, message: str, *, not_found: bool = False) -> None:
        super().__init__(message)
        self.not_found = not_found


class ValidationError(ConsoleError):
    """Form input rejected before any collaborator call."""
