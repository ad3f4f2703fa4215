"""
Remote-side command client for RadioLink.

Each call opens a fresh TCP connection to the Player, sends one request line,
reads one reply line and closes. Connect and read are each bounded by a short
timeout (2 s by default).

Transport problems never raise: `test_connection()` returns False and
`send_command()` returns a synthesized `ERROR:...` line, so callers branch on
the reply prefix only.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from radiolink.protocol.commands import (
    COMMAND_PORT,
    ENCODING,
    ERROR_CONNECTION_CLOSED,
    ERROR_CONNECTION_TIMEOUT,
    ERROR_RESPONSE_TIMEOUT,
    LINE_TERMINATOR,
    RESPONSE_PONG,
    CommandType,
    format_error,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0


class _ConnectTimeout(Exception):
    pass


class _ResponseTimeout(Exception):
    pass


class _ConnectionClosed(Exception):
    pass


def split_address(address: str, default_port: int = COMMAND_PORT) -> tuple[str, int]:
    """
    Split "host" or "host:port" into a (host, port) pair.

    Bare IPv6 addresses (more than one colon) are taken as a host, and
    "[::1]:6435" style brackets are understood.
    """
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        if rest.startswith(":") and rest[1:].isdigit():
            return host, int(rest[1:])
        return host, default_port

    if address.count(":") == 1:
        host, _, port = address.partition(":")
        if port.isdigit():
            return host, int(port)
        raise ValueError(f"Invalid port in address: {address!r}")

    return address, default_port


class RemoteClient:
    """
    Sends commands to a Player.

    Attributes:
        port: Default Player port when the address does not carry one.
        timeout: Connect timeout and read timeout, each, in seconds.
    """

    def __init__(self, port: int = COMMAND_PORT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.port = port
        self.timeout = timeout

    async def _exchange(self, address: str, line: str) -> str:
        host, port = split_address(address, self.port)

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise _ConnectTimeout from None

        try:
            writer.write((line + LINE_TERMINATOR).encode(ENCODING))
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)

            try:
                raw = await asyncio.wait_for(reader.readline(), timeout=self.timeout)
            except asyncio.TimeoutError:
                raise _ResponseTimeout from None

            if not raw:
                raise _ConnectionClosed
            return raw.decode(ENCODING, errors="replace").rstrip("\r\n")
        finally:
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()

    async def test_connection(self, address: str) -> bool:
        """
        Check that a Player answers PING with PONG.

        Returns:
            True only for an exact PONG reply within the timeouts.
        """
        try:
            response = await self._exchange(address, CommandType.PING.value)
        except _ConnectTimeout:
            logger.warning("Connection timeout to %s", address)
            return False
        except _ResponseTimeout:
            logger.warning("PING response timeout from %s", address)
            return False
        except _ConnectionClosed:
            logger.warning("Connection to %s closed without a reply", address)
            return False
        except (OSError, ValueError, asyncio.TimeoutError) as e:
            logger.warning("Connection test failed for %s: %s", address, e)
            return False

        if response == RESPONSE_PONG:
            logger.info("Successfully connected to player at %s", address)
            return True

        logger.warning("Unexpected PING response from %s: %s", address, response)
        return False

    async def send_command(self, address: str, command: str) -> str:
        """
        Send one request line and return the reply line.

        Returns:
            The Player's reply, or ERROR:Connection timeout,
            ERROR:Response timeout, ERROR:Connection closed, or
            ERROR:<exception text> on transport failure.
        """
        try:
            response = await self._exchange(address, command)
        except _ConnectTimeout:
            logger.warning("Connection timeout sending %s to %s", command, address)
            return format_error(ERROR_CONNECTION_TIMEOUT)
        except _ResponseTimeout:
            logger.warning("Response timeout for %s from %s", command, address)
            return format_error(ERROR_RESPONSE_TIMEOUT)
        except _ConnectionClosed:
            logger.warning("Connection to %s closed without a reply to %s", address, command)
            return format_error(ERROR_CONNECTION_CLOSED)
        except (OSError, ValueError, asyncio.TimeoutError) as e:
            logger.warning("Failed to send %s to %s: %s", command, address, e)
            return format_error(str(e) or type(e).__name__)

        logger.debug("%s -> %s", command, response)
        return response
