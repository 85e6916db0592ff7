"""
Event Bus for zmusic.

This module provides a simple pub/sub event system for decoupled communication
between components. The rendering layer (and the web surface) subscribe here
to learn about state changes without polling the store.

Event types:
- player.state: A command changed the player state
- player.track: The current track changed identity
- player.error: The audio device refused to start playback
- catalog.loaded: A catalog fetch completed and was applied
- catalog.error: A catalog fetch failed

Usage:
    bus = EventBus()

    async def on_track(event: TrackChangedEvent) -> None:
        print(f"Now playing {event.song_id}")

    await bus.subscribe("player.track", on_track)
    await bus.publish(TrackChangedEvent(song_id=1, index=0))

There is no module-level bus instance; the application owns one and hands it
to the components that need it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class StateChangedEvent(Event):
    """Fired after every state transition."""

    event_type: str = field(default="player.state", init=False)
    command: str = ""
    state: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "command": self.command,
            "state": self.state,
        }


@dataclass
class TrackChangedEvent(Event):
    """Fired when the current track changes identity."""

    event_type: str = field(default="player.track", init=False)
    song_id: int | None = None
    index: int | None = None
    track_generation: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "song_id": self.song_id,
            "index": self.index,
            "track_generation": self.track_generation,
        }


@dataclass
class PlaybackErrorEvent(Event):
    """Fired when the audio device rejects a start request."""

    event_type: str = field(default="player.error", init=False)
    song_id: int | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "song_id": self.song_id,
            "message": self.message,
        }


@dataclass
class CatalogLoadedEvent(Event):
    """Fired when a catalog fetch was applied to the store."""

    event_type: str = field(default="catalog.loaded", init=False)
    count: int = 0
    generation: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "count": self.count,
            "generation": self.generation,
        }


@dataclass
class CatalogErrorEvent(Event):
    """Fired when a catalog fetch failed."""

    event_type: str = field(default="catalog.error", init=False)
    message: str = ""
    status: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.event_type,
            "message": self.message,
        }
        if self.status is not None:
            result["status"] = self.status
        return result


class EventBus:
    """
    Simple async pub/sub event bus.

    Supports:
    - Multiple handlers per event type
    - Wildcard subscriptions (e.g., "player.*")
    - Async handlers
    - Error isolation (one handler failing doesn't affect others)
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task[int]] = set()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event type to subscribe to. Use "*" suffix for wildcards.
            handler: Async function to call when event is published.
        """
        async with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns True if handler was found and removed.
        """
        async with self._lock:
            if event_type in self._handlers:
                try:
                    self._handlers[event_type].remove(handler)
                    logger.debug("Unsubscribed from %s: %s", event_type, handler)
                    return True
                except ValueError:
                    pass
            return False

    async def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Args:
            event: The event to publish.

        Returns:
            Number of handlers that received the event.
        """
        event_type = event.event_type
        handlers_called = 0

        async with self._lock:
            matching_handlers: list[EventHandler] = list(self._handlers.get(event_type, []))

            # Wildcard matches (e.g., "player.*" matches "player.state")
            for pattern, handlers in self._handlers.items():
                if pattern.endswith(".*"):
                    prefix = pattern[:-2]
                    if event_type.startswith(prefix + "."):
                        matching_handlers.extend(handlers)
                elif pattern == "*":
                    matching_handlers.extend(handlers)

        # Call handlers outside of lock
        for handler in matching_handlers:
            try:
                await handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event_type, handlers_called)

        return handlers_called

    def publish_sync(self, event: Event) -> None:
        """
        Schedule event publication from synchronous code.

        This creates a task to publish the event asynchronously.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Cannot publish event %s: no running event loop", event.event_type)
            return
        task = loop.create_task(self.publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every event scheduled with `publish_sync` has been delivered."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def clear(self) -> None:
        """Remove all subscriptions."""
        async with self._lock:
            self._handlers.clear()
            logger.debug("Cleared all event subscriptions")
