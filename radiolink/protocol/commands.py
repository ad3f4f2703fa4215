"""
RadioLink command protocol (Remote → Player).

Every request and every reply is a single line of UTF-8 text terminated by a
line break. Fields are separated by "|" in requests and ":" in the state reply.

    Request                 Reply
    PING                    PONG
    SELECT_STATION|<index>  OK | ERROR:Invalid station index
    MUTE                    OK
    UNMUTE                  OK
    GET_STATE               STATE:<index>:<MUTED|PLAYING> | ERROR:No state handler
    TESTURL|<url>           OK | ERROR:Invalid number of parts
    <anything else>         ERROR:Unknown command
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from radiolink.core import RadioLinkError

# Default Player command port
COMMAND_PORT = 6435

FIELD_SEPARATOR = "|"
LINE_TERMINATOR = "\n"
ENCODING = "utf-8"

RESPONSE_PONG = "PONG"
RESPONSE_OK = "OK"
STATE_PREFIX = "STATE:"
ERROR_PREFIX = "ERROR:"

STATE_MUTED = "MUTED"
STATE_PLAYING = "PLAYING"

ERROR_UNKNOWN_COMMAND = "Unknown command"
ERROR_INVALID_STATION_INDEX = "Invalid station index"
ERROR_INVALID_PARTS = "Invalid number of parts"
ERROR_NO_STATE_HANDLER = "No state handler"
ERROR_LINE_TOO_LONG = "Line too long"

# Client-side synthesized errors
ERROR_CONNECTION_TIMEOUT = "Connection timeout"
ERROR_RESPONSE_TIMEOUT = "Response timeout"
ERROR_CONNECTION_CLOSED = "Connection closed"


class CommandType(Enum):
    """Closed command vocabulary."""

    PING = "PING"
    SELECT_STATION = "SELECT_STATION"
    MUTE = "MUTE"
    UNMUTE = "UNMUTE"
    GET_STATE = "GET_STATE"
    TESTURL = "TESTURL"


class ProtocolError(RadioLinkError):
    """A request line that cannot be turned into a command."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class Command:
    """A decoded request."""

    type: CommandType
    station_index: int | None = None
    url: str | None = None

    def encode(self) -> str:
        """Render the request line (without terminator)."""
        if self.type is CommandType.SELECT_STATION:
            return f"{self.type.value}{FIELD_SEPARATOR}{self.station_index}"
        if self.type is CommandType.TESTURL:
            return f"{self.type.value}{FIELD_SEPARATOR}{self.url}"
        return self.type.value


@dataclass(frozen=True)
class PlayerStateSnapshot:
    """Station index and mute flag as reported by GET_STATE."""

    station_index: int
    muted: bool


# Commands without fields must match exactly.
_BARE_COMMANDS = {
    CommandType.PING.value: CommandType.PING,
    CommandType.MUTE.value: CommandType.MUTE,
    CommandType.UNMUTE.value: CommandType.UNMUTE,
    CommandType.GET_STATE.value: CommandType.GET_STATE,
}


def parse_command(line: str) -> Command:
    """
    Decode one request line.

    Args:
        line: The request, with or without its trailing line break.

    Returns:
        The decoded Command.

    Raises:
        ProtocolError: For unknown commands or malformed fields. The error's
            `reason` is the text that goes after "ERROR:" in the reply.
    """
    line = line.rstrip("\r\n")

    bare = _BARE_COMMANDS.get(line)
    if bare is not None:
        return Command(bare)

    if line.startswith(CommandType.SELECT_STATION.value + FIELD_SEPARATOR):
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) == 2:
            try:
                return Command(CommandType.SELECT_STATION, station_index=int(parts[1].strip()))
            except ValueError:
                pass
        raise ProtocolError(ERROR_INVALID_STATION_INDEX)

    if line.startswith(CommandType.TESTURL.value + FIELD_SEPARATOR):
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) == 2:
            return Command(CommandType.TESTURL, url=parts[1])
        raise ProtocolError(ERROR_INVALID_PARTS)

    raise ProtocolError(ERROR_UNKNOWN_COMMAND)


# -----------------------------------------------------------------------------
# Request builders
# -----------------------------------------------------------------------------


def build_select_station(index: int) -> str:
    return Command(CommandType.SELECT_STATION, station_index=index).encode()


def build_testurl(url: str) -> str:
    if any(ch in url for ch in (FIELD_SEPARATOR, "\r", "\n")):
        raise ValueError(f"URL cannot be sent over the command channel: {url!r}")
    return Command(CommandType.TESTURL, url=url).encode()


# -----------------------------------------------------------------------------
# Replies
# -----------------------------------------------------------------------------


def format_error(reason: str) -> str:
    """Build an ERROR reply; line breaks in the reason are flattened."""
    flat = " ".join(str(reason).splitlines()).strip()
    return f"{ERROR_PREFIX}{flat}"


def format_state(station_index: int, muted: bool) -> str:
    return f"{STATE_PREFIX}{station_index}:{STATE_MUTED if muted else STATE_PLAYING}"


def is_error(response: str | None) -> bool:
    return response is None or response.startswith(ERROR_PREFIX)


def parse_state_response(response: str | None) -> PlayerStateSnapshot | None:
    """
    Parse a GET_STATE reply.

    Only `STATE:<int>:<MUTED|PLAYING>` is accepted; ERROR replies and any
    other shape give None instead of raising.
    """
    if not response or not response.startswith(STATE_PREFIX):
        return None

    parts = response.strip().split(":")
    if len(parts) != 3:
        return None

    try:
        index = int(parts[1])
    except ValueError:
        return None

    if parts[2] == STATE_MUTED:
        return PlayerStateSnapshot(station_index=index, muted=True)
    if parts[2] == STATE_PLAYING:
        return PlayerStateSnapshot(station_index=index, muted=False)
    return None
