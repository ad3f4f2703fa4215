"""
RadioLink - Main Server Module

This module contains the RadioLinkServer class that wires all components
together and manages the application lifecycle and the operating mode.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import signal
import socket
from pathlib import Path

from radiolink.config import AppConfig, get_config
from radiolink.core.controller import PlaybackController
from radiolink.core.events import Event, EventBus, ModeChangedEvent, StationChangedEvent, event_bus
from radiolink.core.remote import RemoteController
from radiolink.core.settings import OperatingMode, SettingsStore
from radiolink.core.stations import find_station_index, load_stations
from radiolink.player.engine import PlaybackEngine, SubprocessPlaybackEngine
from radiolink.protocol.client import RemoteClient
from radiolink.protocol.commands import PlayerStateSnapshot
from radiolink.protocol.listener import CommandListener
from radiolink.streaming.resolver import StreamResolver
from radiolink.web.server import WebServer

logger = logging.getLogger(__name__)


def get_local_ip_address() -> str:
    """
    Best guess at this machine's LAN address, for typing into a Remote.

    Uses the UDP socket trick (no packet is sent) to find the interface
    used for outbound traffic, and only trusts it if it is a private IPv4
    address.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("192.168.0.1", 9))
            candidate = s.getsockname()[0]
    except OSError as e:
        logger.warning("Failed to get IP address: %s", e)
        return "127.0.0.1"

    try:
        ip = ipaddress.IPv4Address(candidate)
    except ValueError:
        return "127.0.0.1"

    if ip.is_private and not ip.is_loopback:
        return candidate
    return "127.0.0.1"


class RadioLinkServer:
    """
    Main RadioLink application.

    The server manages:
    - Playback controller (sole owner of station/mute/stream state)
    - Command listener (Player mode, port 6435)
    - Remote controller and state poller (Remote mode)
    - Settings store (station name, mode, peer address)
    - Web server for the HTTP UI API

    Exactly one role runs at a time. Switching modes stops the old role's
    network endpoint before the new one starts.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        engine: PlaybackEngine | None = None,
        resolver: StreamResolver | None = None,
        settings: SettingsStore | None = None,
        remote_client: RemoteClient | None = None,
        bus: EventBus | None = None,
        initial_mode: OperatingMode | None = None,
        initial_peer: str | None = None,
    ) -> None:
        """
        Initialize the application.

        Args:
            config: Application configuration (global config if omitted).
            engine: Playback engine (external player process if omitted).
            resolver: Stream resolver (httpx-based if omitted).
            settings: Settings store (SQLite file from config if omitted).
            remote_client: Client used in Remote mode.
            bus: Event bus (global bus if omitted).
            initial_mode: Start in this mode instead of the persisted one.
            initial_peer: Player address that replaces the persisted one.
        """
        self.config = config or get_config()
        self.bus = bus if bus is not None else event_bus

        self.settings = settings or SettingsStore(self.config.storage.settings_db)

        self.resolver = resolver or StreamResolver(
            max_steps=self.config.resolver.max_steps,
            header_timeout=self.config.resolver.header_timeout,
            max_playlist_bytes=self.config.resolver.max_playlist_bytes,
            user_agent=self.config.resolver.user_agent,
        )
        self.engine = engine or SubprocessPlaybackEngine(
            self.config.playback.command,
            ready_marker=self.config.playback.ready_marker,
            load_timeout=self.config.playback.load_timeout,
        )

        self.controller = PlaybackController(self.engine, self.resolver, bus=self.bus)

        self.listener = CommandListener(
            host=self.config.listener.host,
            port=self.config.listener.port,
        )
        # Handlers are registered before the listener can ever start, so
        # GET_STATE never answers "No state handler" in a running app.
        self.listener.set_intent_sink(self.controller.submit)
        self.listener.set_state_handler(self.controller.state_line)

        self.remote = RemoteController(
            remote_client
            or RemoteClient(port=self.config.listener.port, timeout=self.config.remote.timeout),
            self.config.remote.peer_address,
            poll_interval=self.config.remote.poll_interval,
            bus=self.bus,
        )

        self.web_server: WebServer | None = None

        self.mode: OperatingMode | None = None
        self._initial_mode = initial_mode
        self._initial_peer = initial_peer.strip() if initial_peer else None
        self._mode_lock = asyncio.Lock()
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components and enter the persisted mode."""
        logger.info("Starting RadioLink")

        self._running = True
        self._shutdown_event = asyncio.Event()

        await self.settings.open()

        self.controller.load_stations(load_stations(Path(self.config.storage.stations_path)))
        await self.bus.subscribe("playback.station", self._on_station_changed)

        if self._initial_peer:
            await self.set_peer_address(self._initial_peer)
        else:
            peer = await self.settings.get_peer_address()
            if peer:
                self.remote.peer_address = peer

        await self.controller.start()
        if self._initial_mode is not None:
            await self.set_mode(self._initial_mode)
        else:
            await self.set_mode(await self.settings.get_operating_mode(), persist=False)

        if self.config.web.enabled:
            self.web_server = WebServer(self)
            await self.web_server.start(host=self.config.web.host, port=self.config.web.port)

        logger.info("RadioLink started in %s mode", self.mode.value if self.mode else "?")

    async def stop(self) -> None:
        """Stop all components."""
        if not self._running:
            return

        logger.info("Stopping RadioLink...")
        self._running = False

        if self.web_server is not None:
            await self.web_server.stop()
            self.web_server = None

        await self.listener.stop()
        await self.remote.stop()
        await self.controller.stop()
        await self.resolver.aclose()
        await self.bus.unsubscribe("playback.station", self._on_station_changed)

        # Close settings last, after everything that may write to it.
        await self.settings.close()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("RadioLink stopped")

    async def run(self) -> None:
        """Run until SIGINT/SIGTERM."""
        await self.start()

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

        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Mode switching
    # -------------------------------------------------------------------------

    async def set_mode(self, mode: OperatingMode, *, persist: bool = True) -> None:
        """
        Switch operating mode.

        The previous role's endpoint is stopped before the new role starts.
        """
        async with self._mode_lock:
            if mode is self.mode:
                return

            if self.mode is OperatingMode.PLAYER:
                await self.listener.stop()
                self.controller.stop_playback()
                await self.controller.drain()
            elif self.mode is OperatingMode.REMOTE:
                await self.remote.stop()

            if persist:
                await self.settings.set_operating_mode(mode)
            self.mode = mode

            if mode is OperatingMode.PLAYER:
                await self._enter_player_mode()
            else:
                await self.remote.start()

        await self.bus.publish(ModeChangedEvent(mode=mode.value))

    async def _enter_player_mode(self) -> None:
        await self.listener.start()

        if not self.controller.stations:
            return

        saved = await self.settings.get_current_station_name()
        index = find_station_index(self.controller.stations, saved) if saved else None
        self.controller.select_station(index if index is not None else 0)

    async def _on_station_changed(self, event: Event) -> None:
        if isinstance(event, StationChangedEvent) and self.settings.is_open:
            await self.settings.set_current_station_name(event.name)

    # -------------------------------------------------------------------------
    # UI intents (routed to the active role)
    # -------------------------------------------------------------------------

    async def select_station(self, index: int) -> str:
        if self.mode is OperatingMode.REMOTE:
            return await self.remote.select_station(index)
        self.controller.select_station(index)
        return "OK"

    async def toggle_mute(self) -> str:
        if self.mode is OperatingMode.REMOTE:
            return await self.remote.toggle_mute()
        self.controller.toggle_mute()
        return "OK"

    async def play_test_url(self, url: str) -> str:
        await self.settings.set_test_url(url)
        if self.mode is OperatingMode.REMOTE:
            return await self.remote.test_url(url)
        self.controller.play_url(url)
        return "OK"

    async def set_peer_address(self, address: str) -> None:
        await self.settings.set_peer_address(address)
        if address.strip():
            self.remote.peer_address = address.strip()

    async def test_connection(self) -> bool:
        return await self.remote.test_connection()

    def set_idle(self, idle: bool) -> None:
        self.remote.set_idle(idle)

    async def current_state(self) -> PlayerStateSnapshot | None:
        """Player: the owner's snapshot. Remote: the last polled state."""
        if self.mode is OperatingMode.REMOTE:
            return self.remote.last_state
        return await self.controller.request_state()
