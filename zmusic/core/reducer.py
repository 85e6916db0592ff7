"""
Player state reducer.

`reduce(state, command)` is a pure function: it never performs I/O and never
mutates its input, it returns the next PlayerState snapshot. The only source of
nondeterminism is the random draw used for shuffled "next"; it is injected so
tests can pin it down.

Commands are small frozen dataclasses, one per operation a rendering layer can
issue. Commands that cannot apply (e.g. `Next` on an empty catalog) are no-ops
and return the input snapshot unchanged.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Protocol

from zmusic.core.search import filter_catalog
from zmusic.core.song import Song
from zmusic.core.state import PlayerState

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    """The subset of `random.Random` used for shuffle."""

    def randrange(self, stop: int) -> int: ...


@dataclass(frozen=True, slots=True)
class Command:
    """Base class for all player commands."""

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, slots=True)
class LoadCatalog(Command):
    songs: tuple[Song, ...] = ()


@dataclass(frozen=True, slots=True)
class SelectTrack(Command):
    song: Song | None = None
    index: int | None = None


@dataclass(frozen=True, slots=True)
class Play(Command):
    pass


@dataclass(frozen=True, slots=True)
class Pause(Command):
    pass


@dataclass(frozen=True, slots=True)
class Toggle(Command):
    pass


@dataclass(frozen=True, slots=True)
class Next(Command):
    pass


@dataclass(frozen=True, slots=True)
class Previous(Command):
    pass


@dataclass(frozen=True, slots=True)
class SetPosition(Command):
    seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class SetDuration(Command):
    seconds: float | None = 0.0


@dataclass(frozen=True, slots=True)
class SetVolume(Command):
    volume: float = 0.0


@dataclass(frozen=True, slots=True)
class ToggleRepeat(Command):
    pass


@dataclass(frozen=True, slots=True)
class ToggleShuffle(Command):
    pass


@dataclass(frozen=True, slots=True)
class ToggleLike(Command):
    song_id: int | None = None


@dataclass(frozen=True, slots=True)
class SetSearchQuery(Command):
    query: str = ""


@dataclass(frozen=True, slots=True)
class HydrateLikes(Command):
    """Replace the liked set with the persisted one (startup only)."""

    song_ids: frozenset[int] = frozenset()


def load_catalog(songs: Iterable[Song]) -> LoadCatalog:
    """Build a LoadCatalog command from any iterable of songs."""
    return LoadCatalog(songs=tuple(songs))


def _finite_non_negative(value: float | None) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def clamp_volume(value: float) -> float:
    """Clamp a volume into [0, 1]; NaN becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(0.0, min(1.0, number))


def next_index(
    current: int | None,
    length: int,
    *,
    shuffle: bool,
    rng: RandomSource,
) -> int:
    """
    Pick the index that follows `current`.

    Shuffle draws uniformly from [0, length) and redraws until the result
    differs from the current index (a single-track catalog re-selects the same
    track). Sequential mode wraps from the last track back to 0.

    Args:
        current: Current index, or None if nothing was selected (treated as 0).
        length: Catalog length (must be positive).
        shuffle: Whether shuffle is enabled.
        rng: Random source for shuffle.
    """
    base = 0 if current is None else current
    if shuffle:
        candidate = rng.randrange(length)
        while candidate == base and length > 1:
            candidate = rng.randrange(length)
        return candidate
    return (base + 1) % length


def previous_index(current: int | None, length: int) -> int:
    """Index before `current`, wrapping to the last track. Ignores shuffle."""
    base = 0 if current is None else current
    return (base - 1 + length) % length


def _select(state: PlayerState, index: int) -> PlayerState:
    return replace(state, current_index=index, position_seconds=0.0)


def _select_first_if_needed(state: PlayerState) -> PlayerState | None:
    """Make sure there is a current track; None if there is nothing to select."""
    if state.current_song is not None:
        return state
    if not state.has_catalog:
        return None
    return _select(state, 0)


def _load_catalog(state: PlayerState, songs: Sequence[Song]) -> PlayerState:
    catalog = tuple(songs)
    current_index = state.current_index
    if current_index is not None and current_index >= len(catalog):
        logger.debug(
            "Current index %d out of range for new catalog (%d songs), clearing",
            current_index,
            len(catalog),
        )
        current_index = None
    return replace(
        state,
        catalog=catalog,
        current_index=current_index,
        visible_catalog=filter_catalog(catalog, state.search_query),
    )


def _select_track(state: PlayerState, command: SelectTrack) -> PlayerState:
    song = command.song
    if song is None:
        return state

    index = command.index
    if index is None:
        index = next((i for i, s in enumerate(state.catalog) if s.id == song.id), None)
        if index is None:
            logger.warning("Cannot select song %s: not in catalog", song.id)
            return state

    if not 0 <= index < len(state.catalog):
        logger.warning("Cannot select index %d: catalog has %d songs", index, len(state.catalog))
        return state

    return _select(state, index)


def _toggle_like(state: PlayerState, song_id: int | None) -> PlayerState:
    if song_id is None:
        return state
    if song_id in state.liked_ids:
        liked = state.liked_ids - {song_id}
    else:
        liked = state.liked_ids | {song_id}
    return replace(state, liked_ids=liked)


def reduce(
    state: PlayerState,
    command: Command,
    rng: RandomSource | None = None,
) -> PlayerState:
    """
    Apply a command to a state snapshot.

    Args:
        state: Current snapshot.
        command: Command to apply.
        rng: Random source for shuffle (defaults to the `random` module).

    Returns:
        The next snapshot (the same object if the command was a no-op).
    """
    if isinstance(command, LoadCatalog):
        return _load_catalog(state, command.songs)

    if isinstance(command, SelectTrack):
        return _select_track(state, command)

    if isinstance(command, Play):
        selected = _select_first_if_needed(state)
        if selected is None:
            return state
        return selected if selected.is_playing else replace(selected, is_playing=True)

    if isinstance(command, Pause):
        return state if not state.is_playing else replace(state, is_playing=False)

    if isinstance(command, Toggle):
        selected = _select_first_if_needed(state)
        if selected is None:
            return state
        return replace(selected, is_playing=not selected.is_playing)

    if isinstance(command, Next):
        if not state.has_catalog:
            return state
        index = next_index(
            state.current_index,
            len(state.catalog),
            shuffle=state.shuffle_enabled,
            rng=rng if rng is not None else random,
        )
        return _select(state, index)

    if isinstance(command, Previous):
        if not state.has_catalog:
            return state
        return _select(state, previous_index(state.current_index, len(state.catalog)))

    if isinstance(command, SetPosition):
        return replace(state, position_seconds=_finite_non_negative(command.seconds))

    if isinstance(command, SetDuration):
        return replace(state, duration_seconds=_finite_non_negative(command.seconds))

    if isinstance(command, SetVolume):
        return replace(state, volume=clamp_volume(command.volume))

    if isinstance(command, ToggleRepeat):
        return replace(state, repeat_enabled=not state.repeat_enabled)

    if isinstance(command, ToggleShuffle):
        return replace(state, shuffle_enabled=not state.shuffle_enabled)

    if isinstance(command, ToggleLike):
        return _toggle_like(state, command.song_id)

    if isinstance(command, SetSearchQuery):
        query = command.query or ""
        return replace(
            state,
            search_query=query,
            visible_catalog=filter_catalog(state.catalog, query),
        )

    if isinstance(command, HydrateLikes):
        return replace(state, liked_ids=frozenset(command.song_ids))

    logger.warning("Unknown command %r ignored", command)
    return state
