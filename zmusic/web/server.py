"""
Web Server Module for zmusic.

This module provides the WebServer class that creates and manages the
FastAPI application, registers all routes, and maps errors to the
``{"status": "fail"|"error", "message": ...}`` response shape.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zmusic import __version__
from zmusic.core import NotFoundError
from zmusic.core.search import DEFAULT_SUGGESTION_LIMIT
from zmusic.web.routes.api import register_api_routes

if TYPE_CHECKING:
    from zmusic.catalog.client import CatalogClient
    from zmusic.catalog.loader import CatalogLoader
    from zmusic.core.store import PlayerStore
    from zmusic.player.sync import AudioSync

logger = logging.getLogger(__name__)


def error_body(status_code: int, message: str) -> dict[str, str]:
    """Error payload: "fail" for client errors, "error" for server errors."""
    return {"status": "fail" if status_code < 500 else "error", "message": message}


class WebServer:
    """
    FastAPI-based web server for zmusic.

    Provides the REST surface for rendering layers:
    - Player state and catalog
    - Playback commands and seeking
    - Likes and search
    """

    def __init__(
        self,
        store: PlayerStore,
        sync: AudioSync | None = None,
        loader: CatalogLoader | None = None,
        client: CatalogClient | None = None,
        *,
        suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            store: Player store
            sync: Optional audio synchronization layer
            loader: Optional catalog loader
            client: Optional catalog service client
            suggestion_limit: Maximum number of search suggestions
        """
        self.store = store
        self.sync = sync
        self.loader = loader
        self.client = client
        self._suggestion_limit = suggestion_limit

        # Create FastAPI app
        self.app = FastAPI(
            title="zmusic",
            description="Music player core",
            version=__version__,
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Server state
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "127.0.0.1"
        self._port = 8765

        self._register_error_handlers()
        self._register_routes()

    def _register_error_handlers(self) -> None:
        """Map exceptions to the API error shape."""

        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
            return JSONResponse(error_body(exc.status_code, str(exc.detail)), status_code=exc.status_code)

        @self.app.exception_handler(RequestValidationError)
        async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
            return JSONResponse(error_body(400, "Invalid request"), status_code=400)

        @self.app.exception_handler(NotFoundError)
        async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
            return JSONResponse(error_body(404, str(exc)), status_code=404)

        @self.app.exception_handler(ValueError)
        async def bad_value(request: Request, exc: ValueError) -> JSONResponse:
            return JSONResponse(error_body(400, str(exc)), status_code=400)

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        # Health check
        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "zmusic"}

        register_api_routes(
            self.app,
            store=self.store,
            sync=self.sync,
            loader=self.loader,
            client=self.client,
            suggestion_limit=self._suggestion_limit,
        )

    async def start(self, host: str = "127.0.0.1", port: int = 8765) -> None:
        """
        Start the web server.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        # Configure uvicorn
        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        # Start server in background
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None

        if self._serve_task is not None:
            try:
                await asyncio.wait_for(self._serve_task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Web server did not stop in time")
                self._serve_task.cancel()
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        """Get the server port."""
        return self._port

    @property
    def host(self) -> str:
        """Get the server host."""
        return self._host
