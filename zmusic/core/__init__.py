"""
Core domain package.

This package contains the player state, the reducer that mutates it, and the
search derivation. It is independent of the device and web layers so it can
be exercised without any I/O.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `zmusic.core.reducer`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "NotFoundError",
    "CatalogError",
    "DevicePlaybackError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class NotFoundError(CoreError):
    """Raised when a song (or album) cannot be found in the catalog service."""


class CatalogError(CoreError):
    """
    Raised when the catalog service cannot be reached or answers with an error.

    Attributes:
        message: Human readable message (taken from the API error body if present).
        status: HTTP status code, or None for transport failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class DevicePlaybackError(CoreError):
    """Raised by an audio device when it refuses to start playback."""
