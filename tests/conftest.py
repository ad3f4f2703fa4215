"""
Shared fixtures for RadioLink tests.

Playback never launches a real player and resolution never touches the
network: FakeEngine and FakeResolver stand in for both.
"""

from __future__ import annotations

import asyncio

import pytest

from radiolink.core.controller import PlaybackController
from radiolink.core.events import EventBus
from radiolink.core.stations import Station
from radiolink.player.engine import LoadState, PlaybackEngine
from radiolink.streaming.resolver import ResolveResult

STATIONS = [
    Station(name="Alpha FM", url="http://alpha.example/stream.pls"),
    Station(name="Beta Radio", url="http://beta.example/live.mp3"),
    Station(name="Gamma", url="http://gamma.example/listen.m3u"),
]


class FakeEngine(PlaybackEngine):
    """Engine that records calls; `gate` can hold a load open and `halt_delay` slows teardown."""

    def __init__(self, result: LoadState = LoadState.READY) -> None:
        super().__init__()
        self.result = result
        self.gate: asyncio.Event | None = None
        self.halt_delay = 0.0
        self.started: list[str] = []
        self.halts = 0
        self.silenced = 0

    async def _start(self, url: str) -> LoadState:
        self.started.append(url)
        if self.gate is not None:
            await self.gate.wait()
        return self.result

    async def _halt(self) -> None:
        self.halts += 1
        if self.halt_delay:
            await asyncio.sleep(self.halt_delay)

    def _silence(self) -> None:
        self.silenced += 1


class FakeResolver:
    """Resolver that maps seed URLs through a dict (identity by default)."""

    def __init__(self, mapping: dict[str, str] | None = None) -> None:
        self.mapping = mapping or {}
        self.seen: list[str] = []

    async def resolve_chain(self, seed_url: str) -> ResolveResult:
        self.seen.append(seed_url)
        return ResolveResult(url=self.mapping.get(seed_url, seed_url))

    async def resolve(self, seed_url: str) -> str:
        return (await self.resolve_chain(seed_url)).url

    async def aclose(self) -> None:
        pass


async def settle(controller: PlaybackController) -> None:
    """Wait until queued intents and all playback tasks are done."""
    await controller.drain()
    tasks = [t for t in (controller._playback_task, *controller._retiring) if t is not None]
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


@pytest.fixture
def stations() -> list[Station]:
    return list(STATIONS)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
async def controller(
    engine: FakeEngine,
    resolver: FakeResolver,
    stations: list[Station],
    bus: EventBus,
) -> PlaybackController:
    """A running playback owner with three stations."""
    controller = PlaybackController(engine, resolver, stations, bus=bus)
    await controller.start()
    yield controller
    await controller.stop()
