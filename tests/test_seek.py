"""
Tests for zmusic.player.seek.
"""

import math

import pytest

from zmusic.player.seek import SeekGesture, seek_target


class TestSeekTarget:
    """Tests for seek_target."""

    @pytest.mark.parametrize(
        ("offset", "expected"),
        [(0, 0.0), (25, 50.0), (100, 200.0), (150, 200.0), (-10, 0.0), (math.nan, 0.0)],
    )
    def test_ratio_of_duration(self, offset, expected) -> None:
        assert seek_target(offset, 100, 200) == expected

    @pytest.mark.parametrize(("width", "duration"), [(0, 200), (-5, 200), (100, 0), (100, math.nan)])
    def test_impossible_seek(self, width, duration) -> None:
        assert seek_target(10, width, duration) is None


class TestSeekGesture:
    """Tests for SeekGesture."""

    def test_lifecycle(self) -> None:
        gesture = SeekGesture(200)
        assert not gesture.active

        gesture.begin(50)
        assert gesture.active
        assert gesture.ratio == 0.25
        assert gesture.target(120) == 30.0

        gesture.move(400)
        assert gesture.offset == 200
        assert gesture.target(120) == 120.0

        gesture.end()
        assert not gesture.active

    def test_move_ignored_when_inactive(self) -> None:
        gesture = SeekGesture(100)
        gesture.move(40)
        assert gesture.offset == 0

    def test_cancel(self) -> None:
        gesture = SeekGesture(100)
        gesture.begin(10)
        gesture.cancel()
        assert not gesture.active

    def test_offset_from_pointer(self) -> None:
        assert SeekGesture.offset_from_pointer(130, 100) == 30

    def test_zero_width(self) -> None:
        gesture = SeekGesture(0)
        gesture.begin(10)
        assert gesture.ratio == 0.0
        assert gesture.target(100) is None
