"""
Audio device layer.

This package keeps an audio output device aligned with the player store:
- device: AudioDevicePort, the interface every output implements
- clock: ClockAudioDevice, a headless device driven by the event loop clock
- seek: progress-bar gesture translation
- sync: AudioSync, the store <-> device bridge
"""

from zmusic.player.clock import ClockAudioDevice, DurationTable
from zmusic.player.device import AudioDevicePort
from zmusic.player.seek import SeekGesture
from zmusic.player.sync import AudioSync

__all__ = [
    "AudioDevicePort",
    "AudioSync",
    "ClockAudioDevice",
    "DurationTable",
    "SeekGesture",
]
