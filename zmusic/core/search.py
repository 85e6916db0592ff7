"""
Search and filter derivation.

The visible catalog is a pure function of (catalog, query): a song is visible
when the query is empty or when the lowercased query is a substring of the
song's title, artist, album or genre. Catalog order is preserved.

This module also carries the search-bar helpers of the client: the recent
search history, typeahead suggestions and the "trending" terms derived from
the loaded catalog.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from zmusic.core.song import Song

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("title", "artist", "album", "genre")

# Suggestions only draw from these; genre is too coarse to suggest
SUGGESTION_FIELDS = ("title", "artist", "album")

DEFAULT_HISTORY_SIZE = 5
DEFAULT_SUGGESTION_LIMIT = 8


def matches(song: Song, query: str) -> bool:
    """Check whether a song matches a search query (case-insensitive substring)."""
    if not query:
        return True
    needle = query.lower()
    return any(needle in (getattr(song, key) or "").lower() for key in SEARCH_FIELDS)


def filter_catalog(catalog: Sequence[Song], query: str) -> tuple[Song, ...]:
    """
    Derive the visible catalog.

    Args:
        catalog: Songs in load order.
        query: Current search query ("" means no filter).

    Returns:
        The matching songs, in catalog order.
    """
    if not query:
        return tuple(catalog)
    return tuple(song for song in catalog if matches(song, query))


def suggest(
    query: str,
    catalog: Iterable[Song],
    history: Iterable[str] = (),
    *,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[str]:
    """
    Build typeahead suggestions for a partially typed query.

    Titles, artists and albums containing the query come first (catalog order),
    followed by matching history entries. The exact query itself is never
    suggested back from history.
    """
    if not query.strip():
        return []

    needle = query.lower()
    results: dict[str, None] = {}

    for song in catalog:
        for key in SUGGESTION_FIELDS:
            value = getattr(song, key)
            if value and needle in value.lower():
                results.setdefault(value, None)

    for entry in history:
        if needle in entry.lower() and entry != query:
            results.setdefault(entry, None)

    return list(results)[:limit]


def trending_terms(catalog: Iterable[Song], *, artists: int = 5, albums: int = 3) -> list[str]:
    """First few distinct artists followed by the first few distinct albums."""
    seen_artists: dict[str, None] = {}
    seen_albums: dict[str, None] = {}
    for song in catalog:
        if song.artist:
            seen_artists.setdefault(song.artist, None)
        if song.album:
            seen_albums.setdefault(song.album, None)
    return list(seen_artists)[:artists] + list(seen_albums)[:albums]


def _group_by(catalog: Iterable[Song], key: str) -> dict[str, list[Song]]:
    groups: dict[str, list[Song]] = {}
    for song in catalog:
        name = getattr(song, key)
        if name:
            groups.setdefault(name, []).append(song)
    return groups


def group_by_album(catalog: Iterable[Song]) -> dict[str, list[Song]]:
    """Group songs by album name, preserving first-seen order."""
    return _group_by(catalog, "album")


def group_by_artist(catalog: Iterable[Song]) -> dict[str, list[Song]]:
    """Group songs by artist name, preserving first-seen order."""
    return _group_by(catalog, "artist")


class SearchHistory:
    """
    Most-recent-first list of submitted search queries.

    Entries are trimmed and de-duplicated; only the newest `max_size` are kept.
    """

    def __init__(self, entries: Iterable[str] = (), max_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._entries: list[str] = []
        for entry in entries:
            trimmed = entry.strip() if isinstance(entry, str) else ""
            if trimmed and trimmed not in self._entries:
                self._entries.append(trimmed)
        del self._entries[max_size:]

    @classmethod
    def from_stored(cls, value: Any, max_size: int = DEFAULT_HISTORY_SIZE) -> SearchHistory:
        """Build from a persisted value, ignoring anything that isn't a list of strings."""
        if not isinstance(value, list):
            if value is not None:
                logger.warning("Ignoring malformed search history: %r", value)
            return cls(max_size=max_size)
        return cls((v for v in value if isinstance(v, str)), max_size=max_size)

    @property
    def entries(self) -> list[str]:
        """Copy of the history, newest first."""
        return list(self._entries)

    def add(self, query: str) -> bool:
        """
        Record a submitted query.

        Returns:
            True if the history changed.
        """
        trimmed = query.strip()
        if not trimmed:
            return False
        updated = [trimmed, *(q for q in self._entries if q != trimmed)][: self._max_size]
        if updated == self._entries:
            return False
        self._entries = updated
        return True

    def remove(self, query: str) -> bool:
        """Remove an entry. Returns True if it was present."""
        if query not in self._entries:
            return False
        self._entries.remove(query)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: object) -> bool:
        return query in self._entries

    def __iter__(self):
        return iter(list(self._entries))
