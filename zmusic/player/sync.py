"""
Audio device synchronization.

AudioSync keeps one audio device in step with the player store. It listens to
state transitions and drives the device, and it feeds device events (time
updates, metadata, end of track) back into the store as commands.

Identity checks:
- Every source swap gets a new load token from the device; device callbacks
  carrying an older token are discarded.
- Every play/pause intent gets a generation number (latest wins). A `play()`
  that resolves after a newer intent was issued is stale: if the newest
  intent is "paused", the device is paused again.

Failures to start playback never revert the store: `is_playing` stays the
user's intent, `error` is set and a PlaybackErrorEvent is published.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from zmusic.core.events import PlaybackErrorEvent, TrackChangedEvent
from zmusic.core.reducer import Command, Next, Previous, SelectTrack
from zmusic.core.song import Song
from zmusic.core.state import PlayerState
from zmusic.player.seek import SeekGesture

if TYPE_CHECKING:
    from zmusic.core.events import EventBus
    from zmusic.core.store import PlayerStore
    from zmusic.player.device import AudioDevicePort

logger = logging.getLogger(__name__)

PLAYBACK_ERROR_MESSAGE = "Cannot play track."
MISSING_SOURCE_MESSAGE = "Audio source unavailable"

# Commands that (re)start the current track even when it keeps its identity
_NAVIGATION_COMMANDS = (Next, Previous, SelectTrack)


def _track_key(state: PlayerState) -> tuple[int, int] | None:
    song = state.current_song
    if song is None or state.current_index is None:
        return None
    return (song.id, state.current_index)


class AudioSync:
    """
    Bridges a PlayerStore and an AudioDevicePort.

    Usage:
        sync = AudioSync(store, device, base_url="http://localhost:5000")
        sync.attach()
        store.play_song(song)
        ...
        sync.detach()

    Attributes:
        error: User-facing playback error, or None.
    """

    def __init__(
        self,
        store: PlayerStore,
        device: AudioDevicePort,
        *,
        base_url: str = "",
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._device = device
        self._base_url = base_url
        self._event_bus = event_bus

        self._unsubscribe: Callable[[], None] | None = None
        self._load_token: int | None = None
        self._track_generation = 0
        self._intent_generation = 0
        self._gesture: SeekGesture | None = None

        # Strong references to in-flight start requests
        self._pending: set[asyncio.Task[None]] = set()

        self.error: str | None = None

    @property
    def track_generation(self) -> int:
        """Number of source swaps so far."""
        return self._track_generation

    @property
    def intent_generation(self) -> int:
        return self._intent_generation

    @property
    def seeking(self) -> bool:
        return self._gesture is not None and self._gesture.active

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self) -> None:
        """Start following the store and listening to the device."""
        if self._unsubscribe is not None:
            return

        self._device.set_callbacks(
            on_time_update=self._on_time_update,
            on_loaded_metadata=self._on_loaded_metadata,
            on_ended=self._on_ended,
        )
        self._unsubscribe = self._store.subscribe(self._on_state)

        state = self._store.state
        self._device.volume = state.volume
        if state.current_song is not None:
            self._swap_source(state)
            if state.is_playing:
                self._request_start()

        logger.debug("Audio sync attached")

    def detach(self) -> None:
        """Stop following the store. The device is paused."""
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        self._device.set_callbacks()
        self._intent_generation += 1
        self._device.pause()
        logger.debug("Audio sync detached")

    async def settle(self) -> None:
        """Wait for every in-flight start request to resolve."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # =========================================================================
    # Store -> device
    # =========================================================================

    def _on_state(self, previous: PlayerState, current: PlayerState, command: Command) -> None:
        if previous.volume != current.volume:
            self._device.volume = current.volume

        track_changed = _track_key(previous) != _track_key(current)
        restarted = isinstance(command, _NAVIGATION_COMMANDS) and current.current_song is not None

        if track_changed or restarted:
            if current.current_song is None:
                self._clear_source()
                return
            self._swap_source(current)
            if current.is_playing:
                self._request_start()
            else:
                self._request_pause()
            return

        if previous.is_playing != current.is_playing:
            if current.is_playing:
                self._request_start()
            else:
                self._request_pause()

    def _resolve_audio(self, song: Song) -> str:
        return song.audio_url(self._base_url)

    def _swap_source(self, state: PlayerState) -> None:
        song = state.current_song
        assert song is not None

        self._track_generation += 1
        self._gesture = None
        self.error = None

        url = self._resolve_audio(song)
        if not url:
            logger.warning("Song %s has no audio locator", song.id)
            self._intent_generation += 1
            self._device.pause()
            self._load_token = None
            self.error = MISSING_SOURCE_MESSAGE
        else:
            self._load_token = self._device.load(url)
            self._device.current_time = 0
            logger.info("Loaded track %s (%s) from %s", song.id, song.title, url)

        if self._event_bus is not None:
            self._event_bus.publish_sync(
                TrackChangedEvent(
                    song_id=song.id,
                    index=state.current_index,
                    track_generation=self._track_generation,
                )
            )

    def _clear_source(self) -> None:
        self._track_generation += 1
        self._intent_generation += 1
        self._gesture = None
        self._load_token = None
        self._device.pause()
        logger.debug("No current track, device stopped")

    def _request_start(self) -> None:
        self._intent_generation += 1
        generation = self._intent_generation
        if self._load_token is None:
            logger.debug("Start intent %d ignored: no source loaded", generation)
            return
        self._spawn(self._start(generation))

    def _request_pause(self) -> None:
        self._intent_generation += 1
        self._device.pause()

    async def _start(self, generation: int) -> None:
        song = self._store.state.current_song
        try:
            await self._device.play()
        except Exception as e:
            if generation != self._intent_generation:
                logger.debug("Ignoring failure of stale start intent %d: %s", generation, e)
                return
            self.error = PLAYBACK_ERROR_MESSAGE
            logger.error("Playback failed for song %s: %s", song.id if song else None, e)
            if self._event_bus is not None:
                self._event_bus.publish_sync(
                    PlaybackErrorEvent(song_id=song.id if song else None, message=PLAYBACK_ERROR_MESSAGE)
                )
            return

        if generation != self._intent_generation:
            logger.debug(
                "Start intent %d resolved after intent %d", generation, self._intent_generation
            )
            if not self._store.state.is_playing:
                self._device.pause()
            return

        self.error = None

    # =========================================================================
    # Device -> store
    # =========================================================================

    def _is_current(self, token: int) -> bool:
        return self._load_token is not None and token == self._load_token

    def _on_time_update(self, token: int, seconds: float) -> None:
        if not self._is_current(token):
            return
        if self.seeking or not self._device.is_playing:
            return
        self._store.set_position(seconds)

    def _on_loaded_metadata(self, token: int, duration: float | None) -> None:
        if not self._is_current(token):
            logger.debug("Discarding metadata for stale source %d", token)
            return
        if duration is None or not math.isfinite(duration):
            duration = 0.0
        self._store.set_duration(duration)

    def _on_ended(self, token: int) -> None:
        if not self._is_current(token):
            logger.debug("Discarding end of stale source %d", token)
            return

        if self._store.state.repeat_enabled:
            logger.debug("Track ended, repeating")
            self._device.current_time = 0
            self._store.set_position(0)
            self._request_start()
        else:
            self._store.next()

    # =========================================================================
    # Seeking
    # =========================================================================

    def begin_seek(self, offset: float, track_width: float) -> bool:
        """
        Start a seek gesture at `offset` pixels on a bar `track_width` wide.

        Returns:
            True if the gesture started (the duration is known and the bar has
            a width).
        """
        if track_width <= 0 or self._store.state.duration_seconds <= 0:
            return False
        self._gesture = SeekGesture(track_width)
        self._gesture.begin(offset)
        self._apply_gesture()
        return True

    def move_seek(self, offset: float) -> None:
        if not self.seeking:
            return
        assert self._gesture is not None
        self._gesture.move(offset)
        self._apply_gesture()

    def end_seek(self) -> None:
        if self._gesture is None:
            return
        self._gesture.end()
        self._gesture = None

    def _apply_gesture(self) -> None:
        assert self._gesture is not None
        target = self._gesture.target(self._store.state.duration_seconds)
        if target is None:
            return
        self._write_position(target)

    def seek_to(self, seconds: float) -> bool:
        """
        Jump to an absolute position (clamped to the track).

        Returns:
            False if the duration is not known yet.
        """
        duration = self._store.state.duration_seconds
        if duration <= 0 or not math.isfinite(seconds):
            return False
        self._write_position(max(0.0, min(duration, float(seconds))))
        return True

    def _write_position(self, seconds: float) -> None:
        if self._load_token is not None:
            self._device.current_time = seconds
        self._store.set_position(seconds)

    def status(self) -> dict[str, Any]:
        """Sync status for the rendering layer."""
        return {
            "error": self.error,
            "seeking": self.seeking,
            "device_playing": self._device.is_playing,
            "track_generation": self._track_generation,
        }
