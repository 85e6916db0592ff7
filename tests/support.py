"""
Test helpers for the zmusic test suite.

- `make_song`: build catalog entries with sensible defaults
- `FakeDevice`: a scriptable AudioDevicePort that records every call
- `SequenceRng`: a deterministic random source for shuffle
"""

from __future__ import annotations

import asyncio

from zmusic.core import DevicePlaybackError
from zmusic.core.song import Song, SongId
from zmusic.player.device import AudioDevicePort


def make_song(
    song_id: int,
    title: str | None = None,
    *,
    artist: str = "Artist",
    album: str = "Album",
    genre: str = "Pop",
    duration: int = 180,
    audio: str | None = None,
) -> Song:
    """Build a Song; the audio locator defaults to /uploads/<id>.mp3."""
    return Song(
        id=SongId(song_id),
        title=title if title is not None else f"Song {song_id}",
        artist=artist,
        album=album,
        genre=genre,
        duration=duration,
        audio=audio if audio is not None else f"/uploads/{song_id}.mp3",
    )


class SequenceRng:
    """Random source that replays a fixed sequence of draws."""

    def __init__(self, draws: list[int]) -> None:
        self.draws = list(draws)
        self.calls = 0

    def randrange(self, stop: int) -> int:
        self.calls += 1
        value = self.draws.pop(0)
        assert 0 <= value < stop
        return value


class FakeDevice(AudioDevicePort):
    """
    Scriptable audio device.

    `play()` blocks on `gate` when one is set, and raises when `fail_next`
    is True. Tests drive device events with `tick`, `metadata` and `end`.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []
        self.playing = False
        self.fail_next = False
        self.gate: asyncio.Event | None = None
        self._time = 0.0
        self._volume = 1.0

    def _load(self, url: str, token: int) -> None:
        self.calls.append(("load", url))
        self.playing = False
        self._time = 0.0

    async def play(self) -> None:
        self.calls.append(("play", self.source))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next:
            self.fail_next = False
            raise DevicePlaybackError("autoplay blocked")
        self.playing = True

    def pause(self) -> None:
        self.calls.append(("pause",))
        self.playing = False

    @property
    def is_playing(self) -> bool:
        return self.playing

    @property
    def current_time(self) -> float:
        return self._time

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))
        self._time = seconds

    @property
    def duration(self) -> float | None:
        return None

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = value

    # Event helpers

    def tick(self, seconds: float, token: int | None = None) -> None:
        self._emit_time_update(self.load_token if token is None else token, seconds)

    def metadata(self, duration: float | None, token: int | None = None) -> None:
        self._emit_loaded_metadata(self.load_token if token is None else token, duration)

    def end(self, token: int | None = None) -> None:
        self.playing = False
        self._emit_ended(self.load_token if token is None else token)

    def loads(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "load"]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


