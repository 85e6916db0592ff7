"""
Headless audio device.

ClockAudioDevice plays nothing audible: it advances a position clock on the
event loop while "playing", emits time updates every `tick_interval` seconds
and signals the end of the track when the clock reaches the duration. It lets
the player core run as a daemon (and be driven through the web surface)
without a browser.

Durations come from a probe:
- local files (plain paths or ``file://`` URLs) are read with mutagen
- anything else is looked up in a fallback table the application fills with
  the catalog's declared durations
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from collections.abc import Callable, Mapping
from pathlib import Path
from urllib.parse import unquote, urlparse

from mutagen import File as mutagen_file
from mutagen import MutagenError

from zmusic.core import DevicePlaybackError
from zmusic.player.device import AudioDevicePort

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.25

DurationProbe = Callable[[str], "float | None"]


def local_path(url: str) -> Path | None:
    """Map a locator to a local filesystem path, or None for remote sources."""
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    if parsed.scheme in ("", None) or (len(parsed.scheme) == 1 and url[1:3] in (":\\", ":/")):
        return Path(url)
    return None


def probe_file_duration(path: Path) -> float | None:
    """
    Read the duration of a local audio file with mutagen.

    Returns:
        Length in seconds, or None if the file is missing or unreadable.
    """
    try:
        audio = mutagen_file(path)
    except (MutagenError, OSError) as e:
        logger.debug("Cannot probe %s: %s", path, e)
        return None
    if audio is None:
        return None
    length = getattr(getattr(audio, "info", None), "length", None)
    if isinstance(length, (int, float)) and math.isfinite(length) and length > 0:
        return float(length)
    return None


class DurationTable:
    """
    Duration probe: mutagen for local files, a fallback table for the rest.

    The table is refreshed by the application whenever a catalog is loaded.
    """

    def __init__(self, durations: Mapping[str, float] | None = None) -> None:
        self._durations: dict[str, float] = dict(durations or {})

    def update(self, durations: Mapping[str, float]) -> None:
        self._durations = dict(durations)

    def __call__(self, url: str) -> float | None:
        path = local_path(url)
        if path is not None and path.is_file():
            duration = probe_file_duration(path)
            if duration is not None:
                return duration
        duration = self._durations.get(url)
        return float(duration) if duration else None


class ClockAudioDevice(AudioDevicePort):
    """
    Software audio device driven by the event loop clock.

    Usage:
        device = ClockAudioDevice(DurationTable({"http://x/a.mp3": 180}))
        token = device.load("http://x/a.mp3")
        await device.play()
    """

    def __init__(
        self,
        probe: DurationProbe | None = None,
        *,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ) -> None:
        super().__init__()
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        self._probe = probe or DurationTable()
        self._tick_interval = tick_interval

        self._position = 0.0
        self._duration: float | None = None
        self._volume = 1.0
        self._playing = False
        self._ticker: asyncio.Task[None] | None = None
        self._metadata_handle: asyncio.Handle | None = None

    # =========================================================================
    # AudioDevicePort
    # =========================================================================

    def _load(self, url: str, token: int) -> None:
        self._stop_ticker()
        self._playing = False
        self._position = 0.0
        self._duration = self._probe(url) if url else None

        if self._metadata_handle is not None:
            self._metadata_handle.cancel()
            self._metadata_handle = None

        # Metadata arrives asynchronously, like a media element's loadedmetadata
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._duration is not None:
            self._metadata_handle = loop.call_soon(self._emit_loaded_metadata, token, self._duration)

    async def play(self) -> None:
        if not self._source:
            raise DevicePlaybackError("No source loaded")
        if self._duration is None:
            raise DevicePlaybackError(f"Media unavailable: {self._source}")
        if self._playing:
            return
        if self._position >= self._duration:
            self._position = 0.0

        self._playing = True
        self._ticker = asyncio.get_running_loop().create_task(self._run(self._load_token))
        logger.debug("Clock device playing %s from %.1fs", self._source, self._position)

    def pause(self) -> None:
        if not self._playing:
            return
        self._playing = False
        self._stop_ticker()
        logger.debug("Clock device paused at %.1fs", self._position)

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def current_time(self) -> float:
        return self._position

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        value = float(seconds) if math.isfinite(seconds) else 0.0
        if self._duration is not None:
            value = min(value, self._duration)
        self._position = max(0.0, value)

    @property
    def duration(self) -> float | None:
        return self._duration

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = max(0.0, min(1.0, float(value)))

    def close(self) -> None:
        self.pause()
        if self._metadata_handle is not None:
            self._metadata_handle.cancel()
            self._metadata_handle = None

    # =========================================================================
    # Clock
    # =========================================================================

    def _stop_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    async def _run(self, token: int) -> None:
        loop = asyncio.get_running_loop()
        last = loop.time()
        with contextlib.suppress(asyncio.CancelledError):
            while self._playing and token == self._load_token:
                await asyncio.sleep(self._tick_interval)
                now = loop.time()
                self._position += now - last
                last = now

                assert self._duration is not None
                if self._position >= self._duration:
                    self._position = self._duration
                    self._emit_time_update(token, self._position)
                    if token != self._load_token or not self._playing:
                        return
                    self._playing = False
                    self._ticker = None
                    self._emit_ended(token)
                    return

                self._emit_time_update(token, self._position)
