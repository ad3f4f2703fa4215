"""
Event Bus for RadioLink.

This module provides a simple pub/sub event system for decoupled communication
between components. The primary use case is notifying the UI layer when the
playback owner or the Remote poller changes state.

Event types:
- playback.mute: Mute state changed
- playback.station: Current station changed
- playback.state: A stream session changed load state (loading/ready/error/timeout)
- app.mode: Operating mode switched (player/remote)
- remote.state: The Remote poller received (or failed to receive) a Player state

Usage:
    from radiolink.core.events import event_bus

    async def on_mute(event: MuteStateChangedEvent) -> None:
        print(f"Muted: {event.muted}")

    await event_bus.subscribe("playback.mute", on_mute)

    await event_bus.publish(MuteStateChangedEvent(muted=True))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class MuteStateChangedEvent(Event):
    """Fired when the local stream is muted or unmuted."""

    event_type: str = field(default="playback.mute", init=False)
    muted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, "muted": self.muted}


@dataclass
class StationChangedEvent(Event):
    """Fired when the playback owner selects a different station."""

    event_type: str = field(default="playback.station", init=False)
    index: int = 0
    name: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "index": self.index,
            "name": self.name,
            "url": self.url,
        }


@dataclass
class PlaybackStateEvent(Event):
    """Fired when a stream session changes load state."""

    event_type: str = field(default="playback.state", init=False)
    url: str = ""
    state: str = ""  # idle, loading, ready, error, timeout

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, "url": self.url, "state": self.state}


@dataclass
class ModeChangedEvent(Event):
    """Fired after the application switched operating mode."""

    event_type: str = field(default="app.mode", init=False)
    mode: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, "mode": self.mode}


@dataclass
class RemoteStateEvent(Event):
    """Fired by the Remote poller after each GET_STATE round trip."""

    event_type: str = field(default="remote.state", init=False)
    reachable: bool = False
    index: int | None = None
    muted: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.event_type, "reachable": self.reachable}
        if self.index is not None:
            result["index"] = self.index
        if self.muted is not None:
            result["muted"] = self.muted
        return result


def _matches(pattern: str, event_type: str) -> bool:
    """True if a subscription pattern covers the event type."""
    if pattern == "*" or pattern == event_type:
        return True
    return pattern.endswith(".*") and event_type.startswith(pattern[:-1])


class EventBus:
    """
    Async pub/sub bus connecting the playback owner and Remote poller to the UI.

    Handlers are awaited one after another in subscription order. A handler
    that raises is logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Register a handler.

        Args:
            event_type: Exact type ("playback.mute"), prefix ("playback.*")
                or "*" for every event.
            handler: Coroutine function called with the event.
        """
        async with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        async with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler not in handlers:
                return False
            handlers.remove(handler)
        logger.debug("Unsubscribed from %s: %s", event_type, handler)
        return True

    async def publish(self, event: Event) -> int:
        """
        Deliver an event to every matching handler.

        Returns:
            Number of handlers that completed without raising.
        """
        async with self._lock:
            targets = [
                handler
                for pattern, handlers in self._handlers.items()
                if _matches(pattern, event.event_type)
                for handler in handlers
            ]

        delivered = 0
        for handler in targets:
            try:
                await handler(event)
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event.event_type, e)
            else:
                delivered += 1

        if delivered:
            logger.debug("Published %s to %d handlers", event.event_type, delivered)
        return delivered

    async def clear(self) -> None:
        """Remove all subscriptions."""
        async with self._lock:
            self._handlers.clear()


# Global event bus instance
event_bus = EventBus()
