"""
Tests for zmusic.core.reducer.

Tests cover:
- Catalog loading and track selection
- Play / pause / toggle intent
- Sequential and shuffled navigation
- Volume, repeat, shuffle, likes and search query
- No-op behavior on commands that cannot apply
"""

import math

import pytest

from tests.support import SequenceRng, make_song
from zmusic.core.reducer import (
    HydrateLikes,
    LoadCatalog,
    Next,
    Pause,
    Play,
    Previous,
    SelectTrack,
    SetDuration,
    SetPosition,
    SetSearchQuery,
    SetVolume,
    Toggle,
    ToggleLike,
    ToggleRepeat,
    ToggleShuffle,
    clamp_volume,
    load_catalog,
    next_index,
    previous_index,
    reduce,
)
from zmusic.core.state import DEFAULT_VOLUME, PlayerState


def loaded(songs) -> PlayerState:
    """State with `songs` loaded."""
    return reduce(PlayerState(), load_catalog(songs))


def reduce_many(state: PlayerState, *commands, rng=None) -> PlayerState:
    for command in commands:
        state = reduce(state, command, rng)
    return state


class TestInitialState:
    """Tests for the initial PlayerState."""

    def test_defaults(self) -> None:
        state = PlayerState()
        assert state.catalog == ()
        assert state.current_index is None
        assert state.current_song is None
        assert state.is_playing is False
        assert state.volume == DEFAULT_VOLUME
        assert state.liked_ids == frozenset()
        assert state.visible_catalog == ()
        assert not state.has_catalog

    def test_progress_with_unknown_duration(self) -> None:
        assert PlayerState(position_seconds=10).progress == 0.0

    def test_progress(self) -> None:
        assert PlayerState(position_seconds=30, duration_seconds=120).progress == 0.25


class TestLoadCatalog:
    """Tests for LoadCatalog."""

    def test_replaces_catalog_and_visible(self, songs) -> None:
        state = loaded(songs)
        assert state.catalog == tuple(songs)
        assert state.visible_catalog == tuple(songs)
        assert state.has_catalog

    def test_reload_replaces_not_merges(self, songs) -> None:
        state = loaded(songs)
        state = reduce(state, load_catalog([make_song(9)]))
        assert [s.id for s in state.catalog] == [9]

    def test_keeps_search_query(self, songs) -> None:
        state = reduce(PlayerState(), SetSearchQuery("queen"))
        state = reduce(state, load_catalog(songs))
        assert [s.id for s in state.visible_catalog] == [1]

    def test_keeps_current_index(self, songs) -> None:
        state = reduce_many(loaded(songs), SelectTrack(songs[1], 1))
        state = reduce(state, load_catalog(songs))
        assert state.current_index == 1

    def test_clears_index_out_of_range(self, songs) -> None:
        state = reduce_many(loaded(songs), SelectTrack(songs[2], 2))
        state = reduce(state, load_catalog(songs[:1]))
        assert state.current_index is None
        assert state.current_song is None


class TestSelectTrack:
    """Tests for SelectTrack."""

    def test_select_sets_index_and_resets_position(self, songs) -> None:
        state = reduce_many(loaded(songs), SetPosition(42), SelectTrack(songs[2], 2))
        assert state.current_index == 2
        assert state.current_song == songs[2]
        assert state.position_seconds == 0

    def test_select_does_not_start_playback(self, songs) -> None:
        state = reduce(loaded(songs), SelectTrack(songs[0], 0))
        assert state.is_playing is False

    def test_select_keeps_duration_until_device_reports(self, songs) -> None:
        state = reduce_many(loaded(songs), SelectTrack(songs[0], 0), SetDuration(200))
        state = reduce(state, SelectTrack(songs[1], 1))
        assert state.duration_seconds == 200

    def test_select_by_song_only(self, songs) -> None:
        state = reduce(loaded(songs), SelectTrack(songs[1]))
        assert state.current_index == 1

    def test_select_none_is_noop(self, songs) -> None:
        state = loaded(songs)
        assert reduce(state, SelectTrack(None, 0)) is state

    def test_select_out_of_range_is_noop(self, songs) -> None:
        state = loaded(songs)
        assert reduce(state, SelectTrack(songs[0], 7)) is state

    def test_select_unknown_song_is_noop(self, songs) -> None:
        state = loaded(songs)
        assert reduce(state, SelectTrack(make_song(99))) is state

    @pytest.mark.parametrize("position", [0, 5.5, 300])
    def test_position_always_reset(self, songs, position) -> None:
        state = reduce_many(loaded(songs), SelectTrack(songs[0], 0), SetPosition(position))
        assert reduce(state, SelectTrack(songs[0], 0)).position_seconds == 0


class TestPlayPause:
    """Tests for Play / Pause / Toggle."""

    def test_play_selects_first_track(self, songs) -> None:
        state = reduce(loaded(songs), Play())
        assert state.is_playing is True
        assert state.current_index == 0

    def test_play_is_idempotent(self, songs) -> None:
        state = reduce(loaded(songs), Play())
        assert reduce(state, Play()) is state

    def test_pause_is_idempotent(self, songs) -> None:
        state = loaded(songs)
        assert reduce(state, Pause()) is state

    def test_toggle_flips(self, songs) -> None:
        state = reduce(loaded(songs), Toggle())
        assert state.is_playing is True
        assert state.current_index == 0
        assert reduce(state, Toggle()).is_playing is False

    def test_toggle_on_empty_catalog_is_noop(self) -> None:
        state = PlayerState()
        result = reduce(state, Toggle())
        assert result is state
        assert result.is_playing is False
        assert result.current_song is None

    def test_play_on_empty_catalog_is_noop(self) -> None:
        state = PlayerState()
        assert reduce(state, Play()) is state


class TestNavigation:
    """Tests for Next / Previous."""

    def test_sequential_scenario(self, songs) -> None:
        """A -> B -> C -> A."""
        state = reduce(loaded(songs), SelectTrack(songs[0], 0))
        state = reduce(state, Next())
        assert state.current_song == songs[1]
        state = reduce(state, Next())
        assert state.current_song == songs[2]
        state = reduce(state, Next())
        assert state.current_song == songs[0]

    @pytest.mark.parametrize("start", [0, 1, 2])
    def test_sequential_cycles_from_any_start(self, songs, start) -> None:
        state = reduce(loaded(songs), SelectTrack(songs[start], start))
        seen = []
        for _ in range(6):
            state = reduce(state, Next())
            seen.append(state.current_index)
        expected = [(start + i) % 3 for i in range(1, 7)]
        assert seen == expected

    def test_next_resets_position(self, songs) -> None:
        state = reduce_many(loaded(songs), SelectTrack(songs[0], 0), SetPosition(90), Next())
        assert state.position_seconds == 0

    @pytest.mark.parametrize("start", [0, 1, 2])
    def test_previous_then_next_is_identity(self, songs, start) -> None:
        state = reduce(loaded(songs), SelectTrack(songs[start], start))
        assert reduce_many(state, Previous(), Next()).current_index == start

    def test_previous_wraps(self, songs) -> None:
        state = reduce_many(loaded(songs), SelectTrack(songs[0], 0), Previous())
        assert state.current_index == 2

    def test_previous_ignores_shuffle(self, songs) -> None:
        rng = SequenceRng([])
        state = reduce_many(loaded(songs), ToggleShuffle(), SelectTrack(songs[2], 2))
        state = reduce(state, Previous(), rng)
        assert state.current_index == 1
        assert rng.calls == 0

    def test_next_without_selection_starts_from_zero(self, songs) -> None:
        assert reduce(loaded(songs), Next()).current_index == 1

    def test_next_and_previous_on_empty_catalog_are_noops(self) -> None:
        state = PlayerState()
        assert reduce(state, Next()) is state
        assert reduce(state, Previous()) is state

    def test_shuffle_resamples_current_index(self, songs) -> None:
        rng = SequenceRng([1, 1, 1, 0])
        state = reduce_many(loaded(songs), ToggleShuffle(), SelectTrack(songs[1], 1))
        state = reduce(state, Next(), rng)
        assert state.current_index == 0
        assert rng.calls == 4

    def test_shuffle_never_repeats_current(self) -> None:
        catalog = [make_song(i) for i in range(1, 6)]
        state = reduce_many(loaded(catalog), ToggleShuffle(), SelectTrack(catalog[0], 0))
        for _ in range(50):
            previous = state.current_index
            state = reduce(state, Next())
            assert state.current_index != previous

    def test_shuffle_single_track_reselects_it(self) -> None:
        catalog = [make_song(1)]
        rng = SequenceRng([0])
        state = reduce_many(loaded(catalog), ToggleShuffle(), SelectTrack(catalog[0], 0), SetPosition(10))
        state = reduce(state, Next(), rng)
        assert state.current_index == 0
        assert state.position_seconds == 0


class TestNextIndex:
    """Tests for the index helpers."""

    def test_sequential_wraps(self) -> None:
        assert next_index(2, 3, shuffle=False, rng=SequenceRng([])) == 0

    def test_previous_wraps(self) -> None:
        assert previous_index(0, 4) == 3
        assert previous_index(None, 4) == 3


class TestVolume:
    """Tests for SetVolume."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0.5, 0.5), (-1, 0.0), (2, 1.0), (1, 1.0), (0, 0.0), (math.inf, 1.0), (-math.inf, 0.0), (math.nan, 0.0)],
    )
    def test_clamped(self, value, expected) -> None:
        assert reduce(PlayerState(), SetVolume(value)).volume == expected
        assert clamp_volume(value) == expected


class TestFlags:
    """Tests for ToggleRepeat / ToggleShuffle."""

    def test_independent(self) -> None:
        state = reduce_many(PlayerState(), ToggleRepeat(), ToggleShuffle())
        assert state.repeat_enabled is True
        assert state.shuffle_enabled is True
        state = reduce(state, ToggleRepeat())
        assert state.repeat_enabled is False
        assert state.shuffle_enabled is True


class TestLikes:
    """Tests for ToggleLike / HydrateLikes."""

    def test_toggle_is_involution(self) -> None:
        state = PlayerState(liked_ids=frozenset({5}))
        once = reduce(state, ToggleLike(7))
        assert once.liked_ids == {5, 7}
        assert reduce(once, ToggleLike(7)).liked_ids == state.liked_ids

    def test_likes_survive_catalog_reload(self, songs) -> None:
        state = reduce_many(loaded(songs), ToggleLike(1))
        state = reduce(state, load_catalog([make_song(9)]))
        assert state.is_liked(1)
        assert state.liked_songs() == []

    def test_toggle_none_is_noop(self) -> None:
        state = PlayerState()
        assert reduce(state, ToggleLike(None)) is state

    def test_hydrate_replaces(self) -> None:
        state = reduce(PlayerState(liked_ids=frozenset({1})), HydrateLikes(frozenset({2, 3})))
        assert state.liked_ids == {2, 3}


class TestSearchQuery:
    """Tests for SetSearchQuery."""

    def test_scenario(self) -> None:
        apple = make_song(1, "Apple")
        banana = make_song(2, "Banana")
        state = reduce(PlayerState(), LoadCatalog((apple, banana)))
        assert reduce(state, SetSearchQuery("a")).visible_catalog == (apple, banana)
        assert reduce(state, SetSearchQuery("ap")).visible_catalog == (apple,)

    def test_empty_query_restores_catalog(self, songs) -> None:
        state = reduce_many(loaded(songs), SetSearchQuery("queen"), SetSearchQuery(""))
        assert state.visible_catalog == state.catalog


class TestPositionAndDuration:
    """Tests for SetPosition / SetDuration."""

    @pytest.mark.parametrize("value", [math.nan, -3, None, math.inf])
    def test_bad_duration_becomes_zero(self, value) -> None:
        assert reduce(PlayerState(duration_seconds=100), SetDuration(value)).duration_seconds == 0

    def test_position(self) -> None:
        assert reduce(PlayerState(), SetPosition(12.5)).position_seconds == 12.5

    def test_reducer_is_pure(self, songs) -> None:
        state = loaded(songs)
        before = state.to_dict()
        reduce_many(state, Play(), Next(), SetVolume(0.1), ToggleLike(1))
        assert state.to_dict() == before
