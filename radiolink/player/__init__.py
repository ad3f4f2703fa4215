"""
Playback engine for RadioLink.

The engine is the only component that produces audio. It is driven
exclusively by the playback controller.
"""

from radiolink.player.engine import (
    LoadState,
    PlaybackEngine,
    StreamSession,
    SubprocessPlaybackEngine,
)

__all__ = [
    "LoadState",
    "PlaybackEngine",
    "StreamSession",
    "SubprocessPlaybackEngine",
]
