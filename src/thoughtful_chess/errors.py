"""
Exception hierarchy for the live-session client.

All custom exceptions inherit from ThoughtfulChessError so callers can catch
transport and configuration problems in one place.
"""
from __future__ import annotations

from typing import Optional

__all__ = [
    "ThoughtfulChessError",
    "ConfigurationError",
    "ApiError",
    "AuthError",
    "StreamError",
]


class ThoughtfulChessError(Exception):
    """Base exception for all client errors."""


class ConfigurationError(ThoughtfulChessError):
    """Missing or invalid settings (e.g., no API token)."""


class ApiError(ThoughtfulChessError):
    """A request/response call to the game server did not succeed.

    Attributes:
        status: HTTP status code, or None when the request never completed.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthError(ApiError):
    """The server rejected the API token."""


class StreamError(ThoughtfulChessError):
    """A streaming connection was refused or dropped."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
