"""
Player store.

PlayerStore owns the one mutable PlayerState of a session. Every change goes
through `dispatch`, which runs the pure reducer and then notifies subscribers.
Components (the device synchronization layer, the web surface) read snapshots
and submit commands; none of them mutate state directly.

Ordering:
- Commands are applied strictly in the order they are issued.
- A subscriber that dispatches while being notified does not re-enter the
  reducer; its command is queued and applied after the current notification
  round, so every subscriber sees transitions in order.

Persistence:
- Liked ids and the search history are written to the preference store as
  fire-and-forget tasks; a state transition never waits on a write.
- Both are read exactly once, in `hydrate()`.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from zmusic.core.events import EventBus, StateChangedEvent
from zmusic.core.preferences import (
    LIKED_SONGS_KEY,
    SEARCH_HISTORY_KEY,
    PreferenceStore,
    parse_liked_ids,
)
from zmusic.core.reducer import (
    Command,
    HydrateLikes,
    Next,
    Pause,
    Play,
    Previous,
    RandomSource,
    SelectTrack,
    SetDuration,
    SetPosition,
    SetSearchQuery,
    SetVolume,
    Toggle,
    ToggleLike,
    ToggleRepeat,
    ToggleShuffle,
    load_catalog,
    reduce,
)
from zmusic.core.search import DEFAULT_HISTORY_SIZE, SearchHistory
from zmusic.core.song import Song
from zmusic.core.state import PlayerState

logger = logging.getLogger(__name__)

# Listener signature: (previous, current, command)
StateListener = Callable[[PlayerState, PlayerState, Command], None]


class PlayerStore:
    """
    Owned container for the player state.

    Usage:
        store = PlayerStore(preferences=prefs, event_bus=bus)
        await store.hydrate()
        unsubscribe = store.subscribe(on_change)
        store.load_catalog(songs)
        store.play()
    """

    def __init__(
        self,
        *,
        preferences: PreferenceStore | None = None,
        event_bus: EventBus | None = None,
        rng: RandomSource | None = None,
        initial_state: PlayerState | None = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        self._state = initial_state or PlayerState()
        self._preferences = preferences
        self._event_bus = event_bus
        self._rng = rng

        self._listeners: list[StateListener] = []
        self._queue: deque[Command] = deque()
        self._dispatching = False

        self.search_history = SearchHistory(max_size=history_size)
        self._history_size = history_size
        self._hydrated = False

        # Strong references to in-flight preference writes
        self._pending_writes: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> PlayerState:
        """Current snapshot (read-only)."""
        return self._state

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    # =========================================================================
    # Dispatch / subscription
    # =========================================================================

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener for state transitions.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def dispatch(self, command: Command) -> PlayerState:
        """
        Apply a command.

        Returns:
            The state after every queued command has been applied.
        """
        self._queue.append(command)
        if self._dispatching:
            return self._state

        self._dispatching = True
        try:
            while self._queue:
                self._apply(self._queue.popleft())
        except Exception:
            self._queue.clear()
            raise
        finally:
            self._dispatching = False

        return self._state

    def _apply(self, command: Command) -> None:
        previous = self._state
        current = reduce(previous, command, self._rng)
        if current is previous:
            logger.debug("%s: no-op", command.name)
            return

        self._state = current
        logger.debug("%s applied", command.name)

        if current.liked_ids != previous.liked_ids and not isinstance(command, HydrateLikes):
            self._persist(LIKED_SONGS_KEY, sorted(current.liked_ids))

        for listener in list(self._listeners):
            try:
                listener(previous, current, command)
            except Exception as e:
                logger.exception("Error in state listener %s: %s", listener, e)

        if self._event_bus is not None:
            self._event_bus.publish_sync(
                StateChangedEvent(command=command.name, state=current.to_dict())
            )

    # =========================================================================
    # Persistence
    # =========================================================================

    async def hydrate(self) -> None:
        """
        Load liked ids and search history from the preference store.

        Runs once; later calls are ignored so in-session changes are never
        overwritten by stale persisted values.
        """
        if self._hydrated:
            return
        self._hydrated = True

        if self._preferences is None:
            return

        try:
            liked = await self._preferences.get(LIKED_SONGS_KEY)
            history = await self._preferences.get(SEARCH_HISTORY_KEY)
        except Exception as e:
            logger.warning("Could not load preferences: %s", e)
            return

        liked_ids = parse_liked_ids(liked)
        if liked_ids:
            self.dispatch(HydrateLikes(song_ids=liked_ids))
        self.search_history = SearchHistory.from_stored(history, max_size=self._history_size)
        logger.info(
            "Hydrated %d liked songs and %d history entries",
            len(liked_ids),
            len(self.search_history),
        )

    def _persist(self, key: str, value: Any) -> None:
        if self._preferences is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Cannot persist %s: no running event loop", key)
            return
        task = loop.create_task(self._write(key, value))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write(self, key: str, value: Any) -> None:
        assert self._preferences is not None
        try:
            await self._preferences.set(key, value)
        except Exception as e:
            logger.warning("Could not save %s: %s", key, e)

    async def flush(self) -> None:
        """Wait for all in-flight preference writes."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    # =========================================================================
    # Commands
    # =========================================================================

    def load_catalog(self, songs: Iterable[Song]) -> PlayerState:
        return self.dispatch(load_catalog(songs))

    def select_track(self, song: Song | None, index: int | None = None) -> PlayerState:
        return self.dispatch(SelectTrack(song=song, index=index))

    def play_song(self, song: Song | None, index: int | None = None) -> PlayerState:
        """Select a track and start playing it."""
        if song is None:
            return self._state
        self.dispatch(SelectTrack(song=song, index=index))
        return self.dispatch(Play())

    def play(self) -> PlayerState:
        return self.dispatch(Play())

    def pause(self) -> PlayerState:
        return self.dispatch(Pause())

    def toggle(self) -> PlayerState:
        return self.dispatch(Toggle())

    def next(self) -> PlayerState:
        return self.dispatch(Next())

    def previous(self) -> PlayerState:
        return self.dispatch(Previous())

    def set_position(self, seconds: float) -> PlayerState:
        return self.dispatch(SetPosition(seconds=seconds))

    def set_duration(self, seconds: float | None) -> PlayerState:
        return self.dispatch(SetDuration(seconds=seconds))

    def set_volume(self, volume: float) -> PlayerState:
        return self.dispatch(SetVolume(volume=volume))

    def toggle_repeat(self) -> PlayerState:
        return self.dispatch(ToggleRepeat())

    def toggle_shuffle(self) -> PlayerState:
        return self.dispatch(ToggleShuffle())

    def toggle_like(self, song_id: int | None) -> PlayerState:
        return self.dispatch(ToggleLike(song_id=song_id))

    def set_search_query(self, query: str) -> PlayerState:
        return self.dispatch(SetSearchQuery(query=query))

    # =========================================================================
    # Search history
    # =========================================================================

    def submit_search(self, query: str) -> PlayerState:
        """Apply a search query and remember it in the history."""
        trimmed = query.strip()
        state = self.set_search_query(trimmed)
        if self.search_history.add(trimmed):
            self._persist(SEARCH_HISTORY_KEY, self.search_history.entries)
        return state

    def forget_search(self, query: str) -> bool:
        """Remove an entry from the search history."""
        if not self.search_history.remove(query):
            return False
        self._persist(SEARCH_HISTORY_KEY, self.search_history.entries)
        return True
