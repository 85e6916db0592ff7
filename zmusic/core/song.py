"""
Song catalog entries.

A Song is immutable once it has been loaded into a session. Records coming from
the catalog service carry their duration as an ``MM:SS`` string; it is parsed
into whole seconds here so nothing downstream ever does arithmetic on strings.

Locators (artwork and audio) may be absolute URLs or paths relative to the API
host; `resolve_locator` turns them into something a device can open.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, NewType

from zmusic.core import CatalogError

logger = logging.getLogger(__name__)

SongId = NewType("SongId", int)

DEFAULT_GENRE = "Unknown"

# Deterministic artwork fallback, keyed by song id
PLACEHOLDER_IMAGE_URL = "https://picsum.photos/seed/{seed}/{size}"


def parse_duration(value: Any) -> int:
    """
    Parse a catalog duration into total seconds.

    Accepts ``"MM:SS"``, ``"H:MM:SS"`` and plain numbers. Anything that
    cannot be parsed yields 0.

    Args:
        value: Raw duration from a catalog record.

    Returns:
        Duration in whole seconds (never negative).
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return max(0, int(value))

    text = str(value).strip()
    if not text:
        return 0

    parts = text.split(":")
    if len(parts) > 3:
        return 0

    total = 0
    try:
        for part in parts:
            number = int(part)
            if number < 0:
                return 0
            total = total * 60 + number
    except ValueError:
        try:
            seconds = float(text)
        except ValueError:
            logger.debug("Unparseable duration %r, using 0", value)
            return 0
        return max(0, int(seconds)) if math.isfinite(seconds) else 0

    return total


def format_duration(seconds: float | None) -> str:
    """Format seconds as ``M:SS`` (``0:00`` for missing or invalid values)."""
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "0:00"
    whole = int(seconds)
    return f"{whole // 60}:{whole % 60:02d}"


def resolve_locator(path: str | None, base_url: str) -> str:
    """
    Resolve an artwork/audio locator against the API base URL.

    Absolute ``http(s)`` and ``data:`` locators are returned unchanged.

    Args:
        path: Locator from the catalog record.
        base_url: API base URL (e.g. ``http://localhost:5000``).

    Returns:
        The resolved locator, or an empty string when there is none.
    """
    if not path:
        return ""
    if path.startswith(("http://", "https://", "data:")):
        return path

    base = base_url.rstrip("/")
    clean = path[1:] if path.startswith("/") else path
    return f"{base}/{clean}"


def placeholder_image(song_id: int | None, size: int = 400) -> str:
    """Get the placeholder artwork URL for a song."""
    seed = song_id if song_id is not None else "no-image"
    return PLACEHOLDER_IMAGE_URL.format(seed=seed, size=size)


def _coerce_id(raw: Any) -> int:
    if isinstance(raw, bool):
        raise CatalogError(f"Invalid song id: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw.strip())
    raise CatalogError(f"Invalid song id: {raw!r}")


def _optional_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass(frozen=True, slots=True)
class Song:
    """
    A catalog entry.

    `duration` is the catalog's declared length in seconds. It is a display
    hint only; the audio device reports the authoritative duration once the
    media metadata has loaded.
    """

    id: SongId
    title: str
    artist: str = ""
    album: str = ""
    genre: str = DEFAULT_GENRE
    duration: int = 0
    image: str = ""
    audio: str = ""
    release_year: int | None = None
    plays: int = 0
    likes: int = 0

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Song:
        """
        Create a Song from a catalog service record.

        Raises:
            CatalogError: If the record has no usable integer id.
        """
        if "id" not in payload:
            raise CatalogError("Song record without id")

        genre = str(payload.get("genre") or "").strip() or DEFAULT_GENRE
        return cls(
            id=SongId(_coerce_id(payload["id"])),
            title=str(payload.get("title") or ""),
            artist=str(payload.get("artist") or ""),
            album=str(payload.get("album") or ""),
            genre=genre,
            duration=parse_duration(payload.get("duration")),
            image=str(payload.get("image") or ""),
            audio=str(payload.get("audio") or ""),
            release_year=_optional_int(payload.get("releaseYear")),
            plays=_optional_int(payload.get("plays")) or 0,
            likes=_optional_int(payload.get("likes")) or 0,
        )

    def to_dict(self, base_url: str = "") -> dict[str, Any]:
        """
        Serialize in the catalog service's record shape.

        A missing image is replaced by the placeholder artwork for this id.
        """
        result: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "genre": self.genre,
            "duration": format_duration(self.duration),
            "durationInSeconds": self.duration,
            "image": self.artwork_url(base_url),
            "audio": self.audio,
            "plays": self.plays,
            "likes": self.likes,
        }
        if self.release_year is not None:
            result["releaseYear"] = self.release_year
        return result

    def audio_url(self, base_url: str) -> str:
        """Resolved audio locator for this song."""
        return resolve_locator(self.audio, base_url)

    def artwork_url(self, base_url: str, size: int = 400) -> str:
        """Resolved artwork locator, falling back to the placeholder."""
        return resolve_locator(self.image, base_url) or placeholder_image(self.id, size)
