"""
Shared fixtures for the zmusic test suite.
"""

from __future__ import annotations

import pytest

from tests.support import FakeDevice, make_song
from zmusic.core.events import EventBus
from zmusic.core.preferences import MemoryPreferenceStore
from zmusic.core.song import Song
from zmusic.core.store import PlayerStore


@pytest.fixture
def songs() -> list[Song]:
    """A small catalog of three songs."""
    return [
        make_song(1, "Bohemian Rhapsody", artist="Queen", album="A Night at the Opera", genre="Rock"),
        make_song(2, "Blinding Lights", artist="The Weeknd", album="After Hours", genre="Synthpop"),
        make_song(3, "Levitating", artist="Dua Lipa", album="Future Nostalgia", genre="Pop"),
    ]


@pytest.fixture
def prefs() -> MemoryPreferenceStore:
    return MemoryPreferenceStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(prefs: MemoryPreferenceStore, bus: EventBus) -> PlayerStore:
    return PlayerStore(preferences=prefs, event_bus=bus)


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()
