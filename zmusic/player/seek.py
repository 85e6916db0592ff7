"""
Seek gesture translation.

A seek gesture is a pointer interaction on the progress bar: press, drag,
release. While a gesture is active, the gesture (not the device clock) is the
source of truth for the playback position; device time updates are ignored
until it ends.

Offsets are measured in pixels from the left edge of the bar and clamped to
[0, track_width]. The target position is ratio * duration.
"""

from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)


def seek_target(offset: float, track_width: float, duration: float) -> float | None:
    """
    Translate a pointer offset into a playback position.

    Returns:
        Target seconds, or None if no seek is possible (unknown duration or
        a bar without width).
    """
    if not math.isfinite(duration) or duration <= 0:
        return None
    if not math.isfinite(track_width) or track_width <= 0:
        return None
    clamped = max(0.0, min(float(track_width), float(offset) if math.isfinite(offset) else 0.0))
    return (clamped / track_width) * duration


class SeekGesture:
    """
    One press-drag-release interaction on the progress bar.

    Attributes:
        track_width: Width of the bar in pixels.
        offset: Last clamped pointer offset.
        active: True between `begin()` and `end()`/`cancel()`.
    """

    def __init__(self, track_width: float) -> None:
        self.track_width = float(track_width)
        self.offset = 0.0
        self.active = False

    @staticmethod
    def offset_from_pointer(client_x: float, track_left: float) -> float:
        """Pointer x relative to the bar's left edge."""
        return float(client_x) - float(track_left)

    def _clamp(self, offset: float) -> float:
        if self.track_width <= 0 or not math.isfinite(offset):
            return 0.0
        return max(0.0, min(self.track_width, float(offset)))

    @property
    def ratio(self) -> float:
        if self.track_width <= 0:
            return 0.0
        return self.offset / self.track_width

    def begin(self, offset: float) -> None:
        self.active = True
        self.offset = self._clamp(offset)

    def move(self, offset: float) -> None:
        if not self.active:
            return
        self.offset = self._clamp(offset)

    def end(self) -> None:
        self.active = False

    def cancel(self) -> None:
        self.active = False

    def target(self, duration: float) -> float | None:
        """Position for the current offset, or None if no seek is possible."""
        return seek_target(self.offset, self.track_width, duration)
