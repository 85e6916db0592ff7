"""
Tests for zmusic.app (component wiring and lifecycle).
"""

from __future__ import annotations

import httpx
import pytest

from tests.support import FakeDevice
from zmusic.app import PlayerApp
from zmusic.config import PlayerConfig
from zmusic.core.preferences import MemoryPreferenceStore

BASE_URL = "http://api.test"

RECORDS = [
    {"id": 1, "title": "Yellow", "artist": "Coldplay", "duration": "4:29", "audio": "/uploads/yellow.mp3"},
    {"id": 2, "title": "Clocks", "artist": "Coldplay", "duration": 307, "audio": "/uploads/clocks.mp3"},
]


def catalog_transport(status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/songs"
        if status != 200:
            return httpx.Response(status, json={"status": "error", "message": "down"})
        return httpx.Response(200, json={"data": RECORDS})

    return httpx.MockTransport(handler)


@pytest.fixture
def config() -> PlayerConfig:
    return PlayerConfig(api_base_url=BASE_URL, request_retries=0, default_volume=0.4)


@pytest.fixture
def prefs() -> MemoryPreferenceStore:
    return MemoryPreferenceStore({"likedSongs": [2], "musicSearchHistory": ["coldplay"]})


class TestPlayerApp:
    """Tests for PlayerApp."""

    async def test_start_loads_and_hydrates(self, config, prefs) -> None:
        device = FakeDevice()
        app = PlayerApp(config, device=device, preferences=prefs, transport=catalog_transport(), serve_web=False)

        await app.start()
        try:
            state = app.store.state
            assert app.is_running
            assert [s.id for s in state.catalog] == [1, 2]
            assert state.liked_ids == {2}
            assert state.volume == 0.4
            assert device.volume == 0.4
            assert app.store.search_history.entries == ["coldplay"]
            assert app.loader.error is None
        finally:
            await app.stop()

        assert not app.is_running

    async def test_catalog_failure_keeps_app_running(self, config, prefs) -> None:
        app = PlayerApp(
            config,
            device=FakeDevice(),
            preferences=prefs,
            transport=catalog_transport(status=500),
            serve_web=False,
        )

        await app.start()
        try:
            assert app.is_running
            assert app.store.state.catalog == ()
            assert app.loader.error == "Server returned HTTP 500"
        finally:
            await app.stop()

    async def test_clock_device_uses_declared_durations(self, config, prefs) -> None:
        app = PlayerApp(config, preferences=prefs, transport=catalog_transport(), serve_web=False)

        await app.start()
        try:
            assert app.durations(f"{BASE_URL}/uploads/yellow.mp3") == 269.0
            assert app.durations(f"{BASE_URL}/uploads/clocks.mp3") == 307.0
        finally:
            await app.stop()

    async def test_playback_through_store(self, config, prefs) -> None:
        device = FakeDevice()
        app = PlayerApp(config, device=device, preferences=prefs, transport=catalog_transport(), serve_web=False)

        await app.start()
        try:
            song = app.store.state.catalog[1]
            app.store.play_song(song, 1)
            await app.sync.settle()
            assert device.loads() == [f"{BASE_URL}/uploads/clocks.mp3"]
            assert device.playing

            app.store.toggle_like(1)
        finally:
            await app.stop()

        assert await prefs.get("likedSongs") == [1, 2]
        assert not device.playing

    async def test_stop_is_idempotent(self, config, prefs) -> None:
        app = PlayerApp(config, device=FakeDevice(), preferences=prefs, transport=catalog_transport(), serve_web=False)
        await app.start()
        await app.stop()
        await app.stop()
