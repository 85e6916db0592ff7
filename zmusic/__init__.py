"""
zmusic - Player core for the Z-Music streaming client.

zmusic owns playback state for a song catalog served by the Z-Music API and
keeps an audio output device aligned with it. A small HTTP surface lets a
rendering layer observe the state and issue commands.
"""

__version__ = "0.1.0"
__author__ = "Z-Music Contributors"
__license__ = "MIT"

from zmusic.app import PlayerApp

__all__ = ["PlayerApp", "__version__"]
