"""Custom exception hierarchy for the PlayZone console."""

from __future__ import annotations

from typing import Optional


class PlayZoneError(Exception):
    """Base class for all PlayZone specific errors."""

    def __init__(self, message: str = "", *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class TransportError(PlayZoneError):
    """Raised when the remote API cannot be reached or returns garbage."""


class ApiError(PlayZoneError):
    """Raised when the remote API answers with a non-2xx status."""


class NotFoundError(ApiError):
    """Raised when a parent or session id has no matching row."""


class ValidationError(PlayZoneError):
    """Raised when a form is missing a required field or holds a bad value."""


class SessionStateError(ApiError):
    """Raised when a session transition is not allowed (e.g. ending it twice)."""
