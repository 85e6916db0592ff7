"""
Tests for zmusic.player.clock.

Tests cover:
- Locator to local path mapping
- Duration probing (mutagen for local files, fallback table otherwise)
- ClockAudioDevice playback clock, metadata and end of track
"""

import asyncio
import wave
from pathlib import Path

import pytest

from zmusic.core import DevicePlaybackError
from zmusic.player.clock import (
    ClockAudioDevice,
    DurationTable,
    local_path,
    probe_file_duration,
)

REMOTE = "http://api.test/uploads/1.mp3"


def write_wav(path: Path, seconds: float, rate: int = 8000) -> Path:
    """Write a mono 16-bit silent WAV file."""
    with wave.open(str(path), "wb") as f:
        f.setnchannels(1)
        f.setsampwidth(2)
        f.setframerate(rate)
        f.writeframes(b"\x00\x00" * int(seconds * rate))
    return path


class TestLocalPath:
    """Tests for local_path."""

    def test_file_url(self) -> None:
        assert local_path("file:///music/My%20Song.mp3") == Path("/music/My Song.mp3")

    def test_plain_path(self) -> None:
        assert local_path("/music/a.mp3") == Path("/music/a.mp3")

    def test_remote(self) -> None:
        assert local_path(REMOTE) is None
        assert local_path("") is None


class TestDurationProbe:
    """Tests for probe_file_duration / DurationTable."""

    def test_probe_wav(self, tmp_path: Path) -> None:
        path = write_wav(tmp_path / "one.wav", 1.0)
        assert probe_file_duration(path) == pytest.approx(1.0)

    def test_probe_missing_file(self, tmp_path: Path) -> None:
        assert probe_file_duration(tmp_path / "missing.mp3") is None

    def test_probe_not_audio(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("not audio")
        assert probe_file_duration(path) is None

    def test_table_fallback(self) -> None:
        table = DurationTable({REMOTE: 180})
        assert table(REMOTE) == 180.0
        assert table("http://api.test/other.mp3") is None

    def test_table_prefers_local_file(self, tmp_path: Path) -> None:
        path = write_wav(tmp_path / "two.wav", 2.0)
        table = DurationTable({str(path): 999})
        assert table(str(path)) == pytest.approx(2.0)

    def test_table_update_replaces(self) -> None:
        table = DurationTable({REMOTE: 180})
        table.update({})
        assert table(REMOTE) is None


class TestClockAudioDevice:
    """Tests for ClockAudioDevice."""

    def test_invalid_tick_interval(self) -> None:
        with pytest.raises(ValueError):
            ClockAudioDevice(tick_interval=0)

    async def test_load_emits_metadata(self) -> None:
        device = ClockAudioDevice(DurationTable({REMOTE: 120}))
        received = []
        device.set_callbacks(on_loaded_metadata=lambda token, duration: received.append((token, duration)))

        token = device.load(REMOTE)
        assert received == []
        await asyncio.sleep(0)

        assert received == [(token, 120.0)]
        assert device.duration == 120.0
        assert device.current_time == 0

    async def test_play_without_source(self) -> None:
        device = ClockAudioDevice()
        with pytest.raises(DevicePlaybackError):
            await device.play()

    async def test_play_unknown_media(self) -> None:
        device = ClockAudioDevice()
        device.load("http://api.test/unknown.mp3")
        with pytest.raises(DevicePlaybackError):
            await device.play()
        assert not device.is_playing

    async def test_plays_to_the_end(self) -> None:
        device = ClockAudioDevice(DurationTable({REMOTE: 0.05}), tick_interval=0.01)
        ticks = []
        ended = asyncio.Event()
        device.set_callbacks(
            on_time_update=lambda token, seconds: ticks.append(seconds),
            on_ended=lambda token: ended.set(),
        )

        device.load(REMOTE)
        await device.play()
        assert device.is_playing

        await asyncio.wait_for(ended.wait(), timeout=2.0)

        assert not device.is_playing
        assert ticks == sorted(ticks)
        assert ticks[-1] == pytest.approx(0.05)
        assert device.current_time == pytest.approx(0.05)

    async def test_pause_stops_clock(self) -> None:
        device = ClockAudioDevice(DurationTable({REMOTE: 60}), tick_interval=0.01)
        device.load(REMOTE)
        await device.play()
        await asyncio.sleep(0.05)
        device.pause()
        position = device.current_time
        await asyncio.sleep(0.05)

        assert not device.is_playing
        assert position > 0
        assert device.current_time == position

    async def test_load_resets_clock(self) -> None:
        device = ClockAudioDevice(DurationTable({REMOTE: 60}), tick_interval=0.01)
        device.load(REMOTE)
        await device.play()
        await asyncio.sleep(0.03)

        old_token = device.load_token
        new_token = device.load(REMOTE)

        assert new_token == old_token + 1
        assert not device.is_playing
        assert device.current_time == 0

    def test_current_time_clamped(self) -> None:
        device = ClockAudioDevice(DurationTable({REMOTE: 60}))
        device.load(REMOTE)
        device.current_time = 90
        assert device.current_time == 60
        device.current_time = -3
        assert device.current_time == 0

    def test_volume_clamped(self) -> None:
        device = ClockAudioDevice()
        device.volume = 1.5
        assert device.volume == 1.0

    async def test_final_tick_reported_while_playing(self) -> None:
        device = ClockAudioDevice(DurationTable({REMOTE: 0.05}), tick_interval=0.01)
        ticks = []
        ended = asyncio.Event()
        device.set_callbacks(
            on_time_update=lambda token, seconds: ticks.append((seconds, device.is_playing)),
            on_ended=lambda token: ended.set(),
        )

        device.load(REMOTE)
        await device.play()
        await asyncio.wait_for(ended.wait(), timeout=2.0)

        last_seconds, playing = ticks[-1]
        assert last_seconds == pytest.approx(0.05)
        assert playing is True
