"""
Player state snapshot.

PlayerState is the single aggregate owned by the player store. It is a frozen
dataclass; the reducer produces a new snapshot for every transition, so a
snapshot handed to a subscriber never changes underneath it.

Design decisions:
- `is_playing` is play-intent, not a mirror of the device's real-time status
- `duration_seconds` is what the device reported for the current track; the
  catalog's declared duration is only a display hint
- `liked_ids` is not tied to the catalog; likes survive catalog reloads
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from zmusic.core.song import Song

DEFAULT_VOLUME = 0.7


@dataclass(frozen=True, slots=True)
class PlayerState:
    """Immutable snapshot of the player."""

    catalog: tuple[Song, ...] = ()
    current_index: int | None = None
    is_playing: bool = False
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume: float = DEFAULT_VOLUME
    repeat_enabled: bool = False
    shuffle_enabled: bool = False
    liked_ids: frozenset[int] = field(default_factory=frozenset)
    search_query: str = ""
    visible_catalog: tuple[Song, ...] = ()

    @property
    def current_song(self) -> Song | None:
        """The active track, or None if nothing has been selected."""
        if self.current_index is None or not 0 <= self.current_index < len(self.catalog):
            return None
        return self.catalog[self.current_index]

    @property
    def has_catalog(self) -> bool:
        return len(self.catalog) > 0

    @property
    def progress(self) -> float:
        """Playback progress in [0, 1]; 0 while the duration is unknown."""
        if self.duration_seconds <= 0:
            return 0.0
        return max(0.0, min(1.0, self.position_seconds / self.duration_seconds))

    def is_liked(self, song_id: int) -> bool:
        return song_id in self.liked_ids

    def liked_songs(self) -> list[Song]:
        """Songs of the current catalog that are liked, in catalog order."""
        return [song for song in self.catalog if song.id in self.liked_ids]

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a dictionary for JSON serialization.

        The catalog itself is not included (it can be large); use the catalog
        endpoint for that.
        """
        current = self.current_song
        return {
            "current_index": self.current_index,
            "current_song": current.to_dict() if current else None,
            "is_playing": self.is_playing,
            "position": self.position_seconds,
            "duration": self.duration_seconds,
            "progress": self.progress,
            "volume": self.volume,
            "repeat": self.repeat_enabled,
            "shuffle": self.shuffle_enabled,
            "liked_ids": sorted(self.liked_ids),
            "search_query": self.search_query,
            "catalog_size": len(self.catalog),
            "visible_size": len(self.visible_catalog),
        }
