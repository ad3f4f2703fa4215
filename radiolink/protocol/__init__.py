"""
Protocol implementations for RadioLink.

This package contains the Player/Remote control channel:
- commands: the line-based wire vocabulary (codec)
- listener: the Player-side TCP server (port 6435)
- client: the Remote-side TCP client

Only the codec is re-exported here; import the listener and client from
their modules.
"""

from radiolink.protocol.commands import (
    COMMAND_PORT,
    Command,
    CommandType,
    PlayerStateSnapshot,
    ProtocolError,
    parse_command,
    parse_state_response,
)

__all__ = [
    "COMMAND_PORT",
    "Command",
    "CommandType",
    "PlayerStateSnapshot",
    "ProtocolError",
    "parse_command",
    "parse_state_response",
]
