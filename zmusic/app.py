"""
zmusic - Main Application Module

This module contains the PlayerApp class that wires all player components
together and manages the application lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
import signal

import httpx

from zmusic.catalog.client import CatalogClient
from zmusic.catalog.loader import CatalogLoader
from zmusic.config import PlayerConfig, get_config
from zmusic.core.events import EventBus
from zmusic.core.preferences import PreferenceStore, SqlitePreferenceStore
from zmusic.core.reducer import Command, LoadCatalog
from zmusic.core.state import PlayerState
from zmusic.core.store import PlayerStore
from zmusic.player.clock import ClockAudioDevice, DurationTable
from zmusic.player.device import AudioDevicePort
from zmusic.player.sync import AudioSync
from zmusic.web.server import WebServer

logger = logging.getLogger(__name__)


class PlayerApp:
    """
    Main zmusic application that coordinates all components.

    The application manages:
    - Preference store (liked songs, search history)
    - Player store (state + reducer)
    - Catalog client and loader (Z-Music API)
    - Audio device and its synchronization with the store
    - Web server for the rendering layer
    """

    def __init__(
        self,
        config: PlayerConfig | None = None,
        *,
        device: AudioDevicePort | None = None,
        preferences: PreferenceStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        serve_web: bool = True,
    ) -> None:
        """
        Initialize the application.

        Args:
            config: Configuration (defaults to the global config).
            device: Audio device (defaults to a ClockAudioDevice).
            preferences: Preference store (defaults to SQLite at the configured path).
            transport: Optional httpx transport for the catalog client.
            serve_web: Whether `start()` launches the web server.
        """
        self.config = config or get_config()
        self.serve_web = serve_web

        self.event_bus = EventBus()

        self.preferences = preferences or SqlitePreferenceStore(self.config.preferences_path)

        self.store = PlayerStore(
            preferences=self.preferences,
            event_bus=self.event_bus,
            initial_state=PlayerState(volume=self.config.default_volume),
            history_size=self.config.history_size,
        )

        self.client = CatalogClient(
            self.config.api_base_url,
            timeout=self.config.request_timeout,
            retries=self.config.request_retries,
            transport=transport,
        )
        self.loader = CatalogLoader(
            self.client,
            self.store,
            event_bus=self.event_bus,
            page_limit=self.config.page_limit,
        )

        # Declared durations let the clock device play remote sources
        self.durations = DurationTable()
        self.device = device or ClockAudioDevice(
            self.durations,
            tick_interval=self.config.tick_interval,
        )
        self.sync = AudioSync(
            self.store,
            self.device,
            base_url=self.config.api_base_url,
            event_bus=self.event_bus,
        )
        self.store.subscribe(self._on_state)

        self.web_server: WebServer | None = None

        # Application state
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    def _on_state(self, previous: PlayerState, current: PlayerState, command: Command) -> None:
        if not isinstance(command, LoadCatalog):
            return
        base_url = self.config.api_base_url
        self.durations.update(
            {song.audio_url(base_url): song.duration for song in current.catalog if song.duration > 0}
        )

    async def start(self) -> None:
        """Start all components."""
        logger.info("Starting zmusic (catalog API: %s)", self.config.api_base_url)

        self._running = True
        self._shutdown_event = asyncio.Event()

        if isinstance(self.preferences, SqlitePreferenceStore):
            await self.preferences.open()

        # Read persisted likes and history exactly once
        await self.store.hydrate()

        self.sync.attach()

        # A failed fetch is reported through the loader; the player stays usable
        await self.loader.refresh()

        if self.serve_web:
            self.web_server = WebServer(
                self.store,
                self.sync,
                self.loader,
                self.client,
                suggestion_limit=self.config.suggestion_limit,
            )
            await self.web_server.start(host=self.config.web_host, port=self.config.web_port)

        logger.info("zmusic started successfully")

    async def stop(self) -> None:
        """Stop all components gracefully."""
        if not self._running:
            return

        logger.info("Stopping zmusic...")
        self._running = False

        # Stop Web server first
        if self.web_server:
            await self.web_server.stop()
            self.web_server = None

        self.sync.detach()
        await self.sync.settle()
        self.device.close()

        # Let pending preference writes land before closing the store
        await self.store.flush()
        await self.event_bus.drain()

        await self.client.close()
        await self.preferences.close()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("zmusic stopped")

    async def run(self) -> None:
        """
        Run the application until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM).
        """
        await self.start()

        # Set up signal handlers for graceful shutdown
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        # Wait for shutdown
        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    @property
    def is_running(self) -> bool:
        """Check if the application is currently running."""
        return self._running
