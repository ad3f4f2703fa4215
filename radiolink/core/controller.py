"""
Playback owner for Player mode.

The controller is the single owner of the station list, the current station
index and the stream session. Nothing else mutates that state: the command
listener and the web API submit *intents* to the controller's queue, and the
controller's own task applies them one at a time, in order.

    listener / web ──submit()──▶ asyncio.Queue ──▶ controller task ──▶ engine

`GET_STATE` goes through the same queue (`state_line()`), so a state reply
always reflects every intent submitted before it.

Starting a stream (resolve, then load) can take many seconds. That work runs
on a separate playback task owned by the controller so the queue keeps
draining; a newer start cancels the older one.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from radiolink.core.events import (
    EventBus,
    MuteStateChangedEvent,
    PlaybackStateEvent,
    StationChangedEvent,
    event_bus,
)
from radiolink.core.stations import Station
from radiolink.player.engine import LoadState
from radiolink.protocol.commands import PlayerStateSnapshot, format_state

if TYPE_CHECKING:
    from radiolink.player.engine import PlaybackEngine
    from radiolink.streaming.resolver import StreamResolver

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Intents
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectStation:
    index: int


@dataclass(frozen=True)
class SetMuted:
    muted: bool


@dataclass(frozen=True)
class ToggleMute:
    pass


@dataclass(frozen=True)
class StopPlayback:
    pass


@dataclass(frozen=True)
class PlayUrl:
    """Resolve and play an arbitrary URL (diagnostic TESTURL)."""

    url: str


@dataclass(frozen=True)
class StateRequest:
    reply: asyncio.Future[PlayerStateSnapshot] = field(compare=False)


Intent = SelectStation | SetMuted | ToggleMute | StopPlayback | PlayUrl | StateRequest

IntentHandler = Callable[[Any], Coroutine[Any, Any, None]]


class PlaybackController:
    """
    Owns playback state and applies intents from its own task.

    Attributes:
        engine: The playback engine (sole audio output).
        resolver: Resolves seed URLs before they reach the engine.
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        resolver: StreamResolver,
        stations: list[Station] | None = None,
        *,
        bus: EventBus | None = None,
    ) -> None:
        self.engine = engine
        self.resolver = resolver
        self._bus = bus if bus is not None else event_bus

        self._stations: list[Station] = list(stations or [])
        self._current_index = 0

        self._queue: asyncio.Queue[Intent] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._playback_task: asyncio.Task[None] | None = None
        self._retiring: set[asyncio.Task[None]] = set()

        self._handlers: dict[type, IntentHandler] = {
            SelectStation: self._apply_select_station,
            SetMuted: self._apply_set_muted,
            ToggleMute: self._apply_toggle_mute,
            StopPlayback: self._apply_stop_playback,
            PlayUrl: self._apply_play_url,
            StateRequest: self._apply_state_request,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the owner task."""
        if self.is_running:
            logger.warning("Playback controller already running")
            return
        self._task = asyncio.create_task(self._run(), name="playback-controller")
        logger.debug("Playback controller started")

    async def stop(self) -> None:
        """Stop the owner task and any stream."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        await self._wait_playback_stopped()
        await self.engine.stop()

        # Fail pending state requests instead of leaving callers hanging.
        while not self._queue.empty():
            intent = self._queue.get_nowait()
            if isinstance(intent, StateRequest) and not intent.reply.done():
                intent.reply.cancel()
            self._queue.task_done()

        logger.debug("Playback controller stopped")

    async def _run(self) -> None:
        while True:
            intent = await self._queue.get()
            try:
                handler = self._handlers[type(intent)]
                await handler(intent)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error applying %s: %s", type(intent).__name__, e)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every submitted intent has been applied."""
        await self._queue.join()

    # -------------------------------------------------------------------------
    # Stations
    # -------------------------------------------------------------------------

    @property
    def stations(self) -> list[Station]:
        return list(self._stations)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_station(self) -> Station | None:
        if not self._stations:
            return None
        return self._stations[self._current_index]

    def load_stations(self, stations: list[Station]) -> None:
        """Replace the station list, keeping the index valid."""
        self._stations = list(stations)
        if not 0 <= self._current_index < len(self._stations):
            self._current_index = 0
        logger.info("Station list loaded (%d stations)", len(self._stations))

    # -------------------------------------------------------------------------
    # Intent submission (safe from any task)
    # -------------------------------------------------------------------------

    def submit(self, intent: Intent) -> None:
        """Queue an intent for the owner task."""
        self._queue.put_nowait(intent)

    def select_station(self, index: int) -> None:
        self.submit(SelectStation(index))

    def set_muted(self, muted: bool) -> None:
        self.submit(SetMuted(muted))

    def toggle_mute(self) -> None:
        self.submit(ToggleMute())

    def play_url(self, url: str) -> None:
        self.submit(PlayUrl(url))

    def stop_playback(self) -> None:
        self.submit(StopPlayback())

    async def request_state(self) -> PlayerStateSnapshot:
        """Snapshot of the owner's state, ordered after earlier intents."""
        if not self.is_running:
            return self.snapshot()
        reply: asyncio.Future[PlayerStateSnapshot] = asyncio.get_running_loop().create_future()
        self.submit(StateRequest(reply))
        return await reply

    async def state_line(self) -> str:
        """GET_STATE reply for the command listener."""
        state = await self.request_state()
        return format_state(state.station_index, state.muted)

    def snapshot(self) -> PlayerStateSnapshot:
        return PlayerStateSnapshot(
            station_index=self._current_index,
            muted=self.engine.is_muted(),
        )

    # -------------------------------------------------------------------------
    # Intent handlers (owner task only)
    # -------------------------------------------------------------------------

    async def _apply_select_station(self, intent: SelectStation) -> None:
        index = intent.index
        if not 0 <= index < len(self._stations):
            logger.warning(
                "Ignoring station index %d (have %d stations)", index, len(self._stations)
            )
            return

        self._current_index = index
        station = self._stations[index]
        logger.info("Selected station %d: %s", index, station.name)

        await self._bus.publish(StationChangedEvent(index=index, name=station.name, url=station.url))
        await self._launch(station.url)

    async def _apply_set_muted(self, intent: SetMuted) -> None:
        was_muted = self.engine.is_muted()

        if intent.muted:
            self._cancel_playback()
            self.engine.set_muted(True)
            logger.info("Stream muted")
        else:
            self.engine.set_muted(False)
            if was_muted and self.engine.session.url:
                await self._launch(self.engine.session.url, resolved=True)
            logger.info("Stream unmuted")

        if was_muted != intent.muted:
            await self._bus.publish(MuteStateChangedEvent(muted=intent.muted))

    async def _apply_toggle_mute(self, intent: ToggleMute) -> None:
        await self._apply_set_muted(SetMuted(not self.engine.is_muted()))

    async def _apply_stop_playback(self, intent: StopPlayback) -> None:
        await self._wait_playback_stopped()
        await self.engine.stop()
        await self._bus.publish(PlaybackStateEvent(url=self.engine.session.url, state=LoadState.IDLE.value))

    async def _apply_play_url(self, intent: PlayUrl) -> None:
        logger.info("Playing test URL: %s", intent.url)
        await self._launch(intent.url)

    async def _apply_state_request(self, intent: StateRequest) -> None:
        if not intent.reply.done():
            intent.reply.set_result(self.snapshot())

    # -------------------------------------------------------------------------
    # Playback task
    # -------------------------------------------------------------------------

    async def _launch(self, url: str, *, resolved: bool = False) -> None:
        """Replace the current playback task with one that plays `url`."""
        retiring = self._cancel_playback()
        was_muted = self.engine.is_muted()
        self._playback_task = asyncio.create_task(
            self._play(url, resolved=resolved, after=retiring)
        )
        if was_muted:
            # play() clears the flag; report it now so snapshots agree.
            self.engine.set_muted(False)
            await self._bus.publish(MuteStateChangedEvent(muted=False))

    def _cancel_playback(self) -> set[asyncio.Task[None]]:
        """
        Cancel the playback task without waiting for it.

        A cancelled load still tears the player down on its own task. Returns
        every playback task whose teardown has not finished yet.
        """
        task, self._playback_task = self._playback_task, None
        if task is not None and not task.done():
            task.cancel()
            self._retiring.add(task)
            task.add_done_callback(self._retiring.discard)
        return set(self._retiring)

    async def _wait_playback_stopped(self) -> None:
        retiring = self._cancel_playback()
        if retiring:
            await asyncio.wait(retiring)

    async def _play(
        self,
        url: str,
        *,
        resolved: bool,
        after: set[asyncio.Task[None]] | None = None,
    ) -> None:
        if after:
            await asyncio.wait(after)

        await self._bus.publish(PlaybackStateEvent(url=url, state=LoadState.LOADING.value))

        stream_url = url
        try:
            if not resolved:
                result = await self.resolver.resolve_chain(url)
                if not result.ok:
                    logger.warning("Could not fully resolve %s (%s), trying %s", url, result.error, result.url)
                stream_url = result.url

            state = await self.engine.play(stream_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Playback of %s failed: %s", url, e)
            await self._bus.publish(PlaybackStateEvent(url=stream_url, state=LoadState.ERROR.value))
            return

        await self._bus.publish(PlaybackStateEvent(url=stream_url, state=state.value))
