"""
Stream URL resolution for RadioLink.

Components:
    StreamResolver: Follows redirects and playlist files to a playable URL.
    parse_playlist: Extracts the first stream entry from a PLS/M3U body.
"""

from radiolink.streaming.resolver import (
    ResolveResult,
    StreamResolver,
    is_playlist_response,
    parse_playlist,
)

__all__ = [
    "ResolveResult",
    "StreamResolver",
    "is_playlist_response",
    "parse_playlist",
]
