"""
Web Server Module for RadioLink.

This module provides the WebServer class that creates and manages the
FastAPI application serving the UI API: station list, current state,
station selection, mute toggle, mode switching and Remote settings.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from radiolink.web.routes.api import register_api_routes

if TYPE_CHECKING:
    from radiolink.server import RadioLinkServer

logger = logging.getLogger(__name__)


class WebServer:
    """
    FastAPI-based web server for RadioLink.

    The routes are thin: every action is delegated to the RadioLinkServer,
    which routes it to the playback owner (Player mode) or to the Player
    over the command channel (Remote mode).
    """

    def __init__(self, app_server: RadioLinkServer) -> None:
        """
        Initialize the WebServer.

        Args:
            app_server: The running application.
        """
        self.app_server = app_server

        self.app = FastAPI(
            title="RadioLink",
            description="Internet radio player with LAN remote control",
            version="0.1.0",
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "0.0.0.0"
        self._port = 8080

        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "radiolink"}

        register_api_routes(self.app, self.app_server)

    async def start(self, host: str = "0.0.0.0", port: int = 8080) -> None:
        """
        Start the web server in the background.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
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
                logger.warning("Web server did not shut down in time")
                self._serve_task.cancel()
            except Exception as e:
                logger.warning("Web server stopped with error: %s", e)
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        return self._port

    @property
    def host(self) -> str:
        return self._host
