"""
Audio device port.

The synchronization layer talks to the audio output through this narrow
interface, so the volatile part (a browser media element, a local player
process, a software clock) can be swapped or faked in tests.

Every `load()` returns a load token. Device events carry the token of the
source they were produced for; a listener compares it with the token of the
last `load()` to drop events that belong to a previous source.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

# (load_token, position_seconds)
TimeUpdateCallback = Callable[[int, float], None]
# (load_token, duration_seconds or None when unknown)
LoadedMetadataCallback = Callable[[int, "float | None"], None]
# (load_token,)
EndedCallback = Callable[[int], None]


class AudioDevicePort(abc.ABC):
    """
    Abstract audio output.

    Subclasses implement the transport; this base class keeps the registered
    callbacks and the load token, and isolates callback failures so a broken
    listener never takes the device down.
    """

    def __init__(self) -> None:
        self._on_time_update: TimeUpdateCallback | None = None
        self._on_loaded_metadata: LoadedMetadataCallback | None = None
        self._on_ended: EndedCallback | None = None
        self._load_token = 0
        self._source = ""

    def set_callbacks(
        self,
        *,
        on_time_update: TimeUpdateCallback | None = None,
        on_loaded_metadata: LoadedMetadataCallback | None = None,
        on_ended: EndedCallback | None = None,
    ) -> None:
        """Register (or clear, with None) the device event callbacks."""
        self._on_time_update = on_time_update
        self._on_loaded_metadata = on_loaded_metadata
        self._on_ended = on_ended

    @property
    def source(self) -> str:
        """Locator of the loaded source ("" if nothing is loaded)."""
        return self._source

    @property
    def load_token(self) -> int:
        """Token of the most recent `load()`."""
        return self._load_token

    def load(self, url: str) -> int:
        """
        Point the device at a new source. Position resets to 0.

        Returns:
            The load token identifying this source.
        """
        self._load_token += 1
        self._source = url
        self._load(url, self._load_token)
        return self._load_token

    @abc.abstractmethod
    def _load(self, url: str, token: int) -> None:
        """Transport-specific part of `load()`."""

    @abc.abstractmethod
    async def play(self) -> None:
        """
        Start (or resume) playback of the loaded source.

        Raises:
            DevicePlaybackError: If the device refuses to play.
        """

    @abc.abstractmethod
    def pause(self) -> None:
        """Pause playback. Safe to call when already paused."""

    @property
    @abc.abstractmethod
    def is_playing(self) -> bool:
        """Real-time status of the device (not play-intent)."""

    @property
    @abc.abstractmethod
    def current_time(self) -> float:
        """Playback position in seconds."""

    @current_time.setter
    @abc.abstractmethod
    def current_time(self, seconds: float) -> None: ...

    @property
    @abc.abstractmethod
    def duration(self) -> float | None:
        """Duration of the loaded source in seconds, None while unknown."""

    @property
    @abc.abstractmethod
    def volume(self) -> float:
        """Output volume in [0, 1]."""

    @volume.setter
    @abc.abstractmethod
    def volume(self, value: float) -> None: ...

    def close(self) -> None:
        """Release the device. Default: pause."""
        self.pause()

    # =========================================================================
    # Event emission (for subclasses)
    # =========================================================================

    def _emit_time_update(self, token: int, seconds: float) -> None:
        if self._on_time_update is None:
            return
        try:
            self._on_time_update(token, seconds)
        except Exception as e:
            logger.exception("Error in time update callback: %s", e)

    def _emit_loaded_metadata(self, token: int, duration: float | None) -> None:
        if self._on_loaded_metadata is None:
            return
        try:
            self._on_loaded_metadata(token, duration)
        except Exception as e:
            logger.exception("Error in loaded metadata callback: %s", e)

    def _emit_ended(self, token: int) -> None:
        if self._on_ended is None:
            return
        try:
            self._on_ended(token)
        except Exception as e:
            logger.exception("Error in ended callback: %s", e)
