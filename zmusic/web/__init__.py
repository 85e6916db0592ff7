"""
zmusic Web Layer.

This package provides the HTTP surface a rendering layer (a browser UI, a
remote control) uses to observe and drive the player.

Components:
- WebServer: FastAPI application with all routes
"""

from zmusic.web.server import WebServer

__all__ = [
    "WebServer",
]
