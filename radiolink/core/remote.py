"""
Remote-mode controller.

In Remote mode this device has no audio of its own. User intents become
commands for the Player at the configured peer address, and a poll task
mirrors the Player's state (station index and mute flag) every 2.5 seconds.
Polling pauses while the device is idle (screensaver showing).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from radiolink.core.events import EventBus, RemoteStateEvent, event_bus
from radiolink.protocol.client import RemoteClient
from radiolink.protocol.commands import (
    ERROR_PREFIX,
    RESPONSE_OK,
    CommandType,
    PlayerStateSnapshot,
    build_select_station,
    build_testurl,
    format_error,
    parse_state_response,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.5


class RemoteController:
    """
    Drives a Player over the command channel.

    All methods return the raw reply line (or False for a failed connection
    test); none of them raise for transport problems.
    """

    def __init__(
        self,
        client: RemoteClient,
        peer_address: str = "",
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        bus: EventBus | None = None,
    ) -> None:
        self.client = client
        self.peer_address = peer_address
        self.poll_interval = poll_interval
        self._bus = bus if bus is not None else event_bus

        self.idle = False
        self.last_state: PlayerStateSnapshot | None = None
        self.reachable = False
        self._poll_task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        if self.is_polling:
            logger.warning("Remote poller already running")
            return
        self._poll_task = asyncio.create_task(self._poll_loop(), name="remote-poller")
        logger.info("Remote mode active (peer: %s)", self.peer_address or "<not set>")

    async def stop(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None
        logger.debug("Remote poller stopped")

    def set_idle(self, idle: bool) -> None:
        if idle != self.idle:
            logger.debug("Remote idle: %s", idle)
        self.idle = idle

    async def _poll_loop(self) -> None:
        while True:
            if not self.idle and self.peer_address:
                await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    async def poll_once(self) -> PlayerStateSnapshot | None:
        """Fetch the Player's state once and publish it."""
        response = await self._send(CommandType.GET_STATE.value)
        state = parse_state_response(response)

        if state is None:
            if not response.startswith(ERROR_PREFIX):
                logger.warning("Unexpected GET_STATE reply: %s", response)
            self.reachable = False
            await self._bus.publish(RemoteStateEvent(reachable=False))
            return None

        self.reachable = True
        self.last_state = state
        await self._bus.publish(
            RemoteStateEvent(reachable=True, index=state.station_index, muted=state.muted)
        )
        return state

    # -------------------------------------------------------------------------
    # User intents
    # -------------------------------------------------------------------------

    async def _send(self, command: str) -> str:
        if not self.peer_address:
            return format_error("No player address set")
        return await self.client.send_command(self.peer_address, command)

    async def test_connection(self) -> bool:
        if not self.peer_address:
            return False
        return await self.client.test_connection(self.peer_address)

    async def select_station(self, index: int) -> str:
        response = await self._send(build_select_station(index))
        if response == RESPONSE_OK and self.last_state is not None:
            self.last_state = PlayerStateSnapshot(station_index=index, muted=self.last_state.muted)
        return response

    async def set_muted(self, muted: bool) -> str:
        command = CommandType.MUTE if muted else CommandType.UNMUTE
        response = await self._send(command.value)
        if response == RESPONSE_OK:
            index = self.last_state.station_index if self.last_state is not None else 0
            self.last_state = PlayerStateSnapshot(station_index=index, muted=muted)
        return response

    async def toggle_mute(self) -> str:
        muted = self.last_state.muted if self.last_state is not None else False
        return await self.set_muted(not muted)

    async def test_url(self, url: str) -> str:
        try:
            command = build_testurl(url)
        except ValueError as e:
            return format_error(str(e))
        return await self._send(command)
