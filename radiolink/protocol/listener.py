"""
Player-side command listener for RadioLink.

Accepts TCP connections from Remotes on the command port (6435), reads one
request line at a time, and writes one reply line per request. A connection
may carry any number of requests; it ends on EOF or an empty line.

The listener never touches playback state. Commands that change state are
turned into intents and handed to the registered intent sink (the playback
owner's queue); GET_STATE awaits the registered state handler.

Reference: see `radiolink.protocol.commands` for the wire vocabulary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from radiolink.core.controller import Intent, PlayUrl, SelectStation, SetMuted
from radiolink.protocol.commands import (
    COMMAND_PORT,
    ENCODING,
    ERROR_LINE_TOO_LONG,
    ERROR_NO_STATE_HANDLER,
    LINE_TERMINATOR,
    RESPONSE_OK,
    RESPONSE_PONG,
    Command,
    CommandType,
    ProtocolError,
    format_error,
    parse_command,
)

logger = logging.getLogger(__name__)

# Longest accepted request line (bytes).
MAX_LINE_BYTES = 8192

IntentSink = Callable[[Intent], None]
StateHandler = Callable[[], Awaitable[str]]


class ListenerState(Enum):
    STOPPED = "stopped"
    LISTENING = "listening"


class CommandListener:
    """
    asyncio TCP server for the Player command endpoint.

    Every accepted connection is handled on its own task, so a stalled
    client cannot block accepts or other clients. Within one connection,
    requests are answered strictly in order.

    Attributes:
        host: The host address to bind to.
        port: The TCP port to listen on (0 lets the OS pick one).
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = COMMAND_PORT,
        *,
        intent_sink: IntentSink | None = None,
        state_handler: StateHandler | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._intent_sink = intent_sink
        self._state_handler = state_handler

        self._server: asyncio.Server | None = None
        self._state = ListenerState.STOPPED
        self._client_tasks: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def set_intent_sink(self, sink: IntentSink | None) -> None:
        self._intent_sink = sink

    def set_state_handler(self, handler: StateHandler | None) -> None:
        self._state_handler = handler

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ListenerState.LISTENING

    @property
    def bound_port(self) -> int | None:
        """The actual listening port (useful when configured with port 0)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> bool:
        """
        Bind the command port and begin accepting connections.

        Returns:
            True if listening. A bind failure is logged and leaves the
            listener stopped.
        """
        if self.is_running:
            logger.warning("Listener already running")
            return True

        try:
            self._server = await asyncio.start_server(
                self._handle_connection,
                host=self.host,
                port=self.port,
                reuse_address=True,
                limit=MAX_LINE_BYTES,
            )
        except OSError as e:
            logger.error("Failed to start listener on %s:%d: %s", self.host, self.port, e)
            self._server = None
            self._state = ListenerState.STOPPED
            return False

        self._state = ListenerState.LISTENING
        logger.info("Command listener started on %s:%d", self.host, self.bound_port or self.port)
        return True

    async def stop(self) -> None:
        """Stop accepting and abandon in-flight connections."""
        if not self.is_running:
            return

        self._state = ListenerState.STOPPED

        if self._server is not None:
            self._server.close()

        for task in list(self._client_tasks):
            task.cancel()
        if self._client_tasks:
            await asyncio.gather(*self._client_tasks, return_exceptions=True)
            self._client_tasks.clear()

        if self._server is not None:
            await self._server.wait_closed()
            self._server = None

        logger.info("Command listener stopped")

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peername = writer.get_extra_info("peername")
        remote_addr = f"{peername[0]}:{peername[1]}" if peername else "unknown"
        logger.debug("Client connected from %s", remote_addr)

        task = asyncio.current_task()
        if task is not None:
            self._client_tasks.add(task)

        try:
            await self._connection_loop(reader, writer, remote_addr)
        except asyncio.CancelledError:
            logger.debug("Connection handler cancelled for %s", remote_addr)
        except (ConnectionResetError, BrokenPipeError):
            logger.debug("Connection reset by %s", remote_addr)
        except Exception as e:
            logger.error("Error handling client %s: %s", remote_addr, e)
        finally:
            if task is not None:
                self._client_tasks.discard(task)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, asyncio.CancelledError):
                pass
            logger.debug("Connection closed: %s", remote_addr)

    async def _connection_loop(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        remote_addr: str,
    ) -> None:
        while self.is_running:
            try:
                raw = await reader.readline()
            except ValueError:
                # StreamReader raises ValueError when a line exceeds the limit.
                logger.warning("Line too long from %s", remote_addr)
                await self._write_line(writer, format_error(ERROR_LINE_TOO_LONG))
                return

            line = raw.decode(ENCODING, errors="replace").rstrip("\r\n")
            if not line:
                return

            logger.debug("Received command from %s: %s", remote_addr, line)
            response = await self.process_command(line)
            await self._write_line(writer, response)

    async def _write_line(self, writer: asyncio.StreamWriter, line: str) -> None:
        writer.write((line + LINE_TERMINATOR).encode(ENCODING))
        await writer.drain()

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def process_command(self, line: str) -> str:
        """
        Turn one request line into its reply line.

        Never raises: malformed input and handler failures become ERROR
        replies.
        """
        try:
            command = parse_command(line)
        except ProtocolError as e:
            return format_error(e.reason)

        try:
            return await self._dispatch(command)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error processing %s: %s", command.type.value, e)
            return format_error(str(e) or type(e).__name__)

    async def _dispatch(self, command: Command) -> str:
        if command.type is CommandType.PING:
            return RESPONSE_PONG

        if command.type is CommandType.GET_STATE:
            if self._state_handler is None:
                return format_error(ERROR_NO_STATE_HANDLER)
            return await self._state_handler()

        if command.type is CommandType.SELECT_STATION:
            assert command.station_index is not None
            self._submit(SelectStation(command.station_index))
        elif command.type is CommandType.MUTE:
            self._submit(SetMuted(True))
        elif command.type is CommandType.UNMUTE:
            self._submit(SetMuted(False))
        elif command.type is CommandType.TESTURL:
            assert command.url is not None
            self._submit(PlayUrl(command.url))

        return RESPONSE_OK

    def _submit(self, intent: Intent) -> None:
        if self._intent_sink is None:
            logger.warning("No intent sink registered, dropping %s", intent)
            return
        self._intent_sink(intent)
