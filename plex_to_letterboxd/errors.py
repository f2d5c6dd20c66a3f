from __future__ import annotations

from typing import Optional


class PlexError(Exception):
    """Base class for every failure talking to the Plex server."""

    def __init__(self, message: str, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class TransportError(PlexError):
    """Connection, DNS or timeout failure before a response arrived."""


class HttpStatusError(PlexError):
    def __init__(self, endpoint: str, status: int) -> None:
        super().__init__(f"Plex returned HTTP {status} for {endpoint}", endpoint)
        self.status = status


class DecodeError(PlexError):
    def __init__(self, endpoint: str, cause: str) -> None:
        super().__init__(f"Failed to decode response from {endpoint}: {cause}", endpoint)
        self.cause = cause


class NotFoundError(PlexError):
    """A library (or its location) requested by name does not exist."""
