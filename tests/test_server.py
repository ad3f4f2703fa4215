"""
Tests for the application server: mode switching, persistence, and a
Remote driving a Player over loopback.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from conftest import STATIONS, FakeEngine, FakeResolver, settle

from radiolink.config import AppConfig, ListenerConfig, RemoteConfig, StorageConfig, WebConfig
from radiolink.core.events import EventBus
from radiolink.core.settings import OperatingMode, SettingsStore
from radiolink.protocol.commands import PlayerStateSnapshot
from radiolink.protocol.listener import ListenerState
from radiolink.server import RadioLinkServer, get_local_ip_address

# =============================================================================
# Fixtures
# =============================================================================


def make_config(tmp_path: Path, name: str = "app") -> AppConfig:
    stations_file = tmp_path / "stations.json"
    if not stations_file.exists():
        stations_file.write_text(json.dumps({"station": [s.to_dict() for s in STATIONS]}))
    return AppConfig(
        listener=ListenerConfig(host="127.0.0.1", port=0),
        remote=RemoteConfig(timeout=1.0, poll_interval=0.05),
        web=WebConfig(enabled=False),
        storage=StorageConfig(
            settings_db=str(tmp_path / f"{name}.sqlite3"),
            stations_file=str(stations_file),
        ),
    )


def make_server(tmp_path: Path, name: str = "app", **kwargs) -> RadioLinkServer:
    return RadioLinkServer(
        make_config(tmp_path, name),
        engine=FakeEngine(),
        resolver=FakeResolver(),
        bus=EventBus(),
        **kwargs,
    )


@pytest.fixture
async def server(tmp_path: Path) -> RadioLinkServer:
    server = make_server(tmp_path)
    await server.start()
    yield server
    await server.stop()


# =============================================================================
# Startup and mode switching
# =============================================================================


class TestStartup:
    """Tests for start()."""

    async def test_starts_in_player_mode(self, server: RadioLinkServer) -> None:
        await settle(server.controller)

        assert server.mode is OperatingMode.PLAYER
        assert server.listener.state is ListenerState.LISTENING
        assert [s.name for s in server.controller.stations] == [s.name for s in STATIONS]
        # No saved station: the first one is selected.
        assert server.controller.current_index == 0
        assert server.engine.started == [STATIONS[0].url]

    async def test_saved_station_is_restored_by_name(self, tmp_path: Path) -> None:
        store = SettingsStore(tmp_path / "app.sqlite3")
        await store.open()
        await store.set_current_station_name("Gamma")
        await store.close()

        server = make_server(tmp_path)
        await server.start()
        await settle(server.controller)

        assert server.controller.current_index == 2
        await server.stop()

    async def test_initial_mode_overrides_saved_mode(self, tmp_path: Path) -> None:
        server = make_server(tmp_path, initial_mode=OperatingMode.REMOTE)
        await server.start()

        assert server.mode is OperatingMode.REMOTE
        assert not server.listener.is_running
        assert await server.settings.get_operating_mode() is OperatingMode.REMOTE
        await server.stop()

    async def test_initial_peer_overrides_saved_peer(self, tmp_path: Path) -> None:
        store = SettingsStore(tmp_path / "app.sqlite3")
        await store.open()
        await store.set_peer_address("127.0.0.2:9")
        await store.close()

        server = make_server(
            tmp_path, initial_mode=OperatingMode.REMOTE, initial_peer=" 127.0.0.3:9 "
        )
        await server.start()

        assert server.remote.peer_address == "127.0.0.3:9"
        assert await server.settings.get_peer_address() == "127.0.0.3:9"
        await server.stop()

    async def test_saved_peer_used_without_initial_peer(self, tmp_path: Path) -> None:
        store = SettingsStore(tmp_path / "app.sqlite3")
        await store.open()
        await store.set_peer_address("127.0.0.2:9")
        await store.close()

        server = make_server(tmp_path, initial_mode=OperatingMode.REMOTE)
        await server.start()

        assert server.remote.peer_address == "127.0.0.2:9"
        await server.stop()

    async def test_stop_is_idempotent(self, tmp_path: Path) -> None:
        server = make_server(tmp_path)
        await server.start()
        await server.stop()
        await server.stop()
        assert not server.is_running


class TestModeSwitching:
    """Tests for set_mode()."""

    async def test_player_to_remote_stops_listener_and_playback(self, server: RadioLinkServer) -> None:
        await settle(server.controller)

        await server.set_mode(OperatingMode.REMOTE)

        assert server.mode is OperatingMode.REMOTE
        assert server.listener.state is ListenerState.STOPPED
        assert server.remote.is_polling
        assert server.engine.session.load_state.value == "idle"
        assert await server.settings.get_operating_mode() is OperatingMode.REMOTE

    async def test_remote_to_player_restarts_listener(self, server: RadioLinkServer) -> None:
        server.controller.select_station(1)
        await settle(server.controller)

        await server.set_mode(OperatingMode.REMOTE)
        await server.set_mode(OperatingMode.PLAYER)
        await settle(server.controller)

        assert server.listener.is_running
        assert not server.remote.is_polling
        # The station persisted by name is selected again.
        assert server.controller.current_index == 1

    async def test_same_mode_is_noop(self, server: RadioLinkServer) -> None:
        port = server.listener.bound_port
        await server.set_mode(OperatingMode.PLAYER)
        assert server.listener.bound_port == port

    async def test_mode_event(self, server: RadioLinkServer) -> None:
        modes = []

        async def on_mode(event) -> None:
            modes.append(event.mode)

        await server.bus.subscribe("app.mode", on_mode)
        await server.set_mode(OperatingMode.REMOTE)
        assert modes == ["remote"]


class TestUiIntents:
    """Tests for the UI-facing methods in Player mode."""

    async def test_select_and_state(self, server: RadioLinkServer) -> None:
        assert await server.select_station(2) == "OK"
        assert await server.current_state() == PlayerStateSnapshot(2, False)

    async def test_toggle_mute(self, server: RadioLinkServer) -> None:
        await server.toggle_mute()
        assert (await server.current_state()).muted is True

    async def test_play_test_url_is_persisted(self, server: RadioLinkServer) -> None:
        assert await server.play_test_url("http://test.example/a.pls") == "OK"
        assert await server.settings.get_test_url() == "http://test.example/a.pls"

    async def test_set_peer_address(self, server: RadioLinkServer) -> None:
        await server.set_peer_address(" 10.0.0.7 ")
        assert server.remote.peer_address == "10.0.0.7"
        assert await server.settings.get_peer_address() == "10.0.0.7"

        await server.set_peer_address("")
        assert server.remote.peer_address == "10.0.0.7"

    async def test_set_idle(self, server: RadioLinkServer) -> None:
        server.set_idle(True)
        assert server.remote.idle


# =============================================================================
# Remote driving a Player
# =============================================================================


class TestRemoteAgainstPlayer:
    """A Remote instance controls a Player instance over loopback TCP."""

    async def test_remote_controls_player(self, tmp_path: Path) -> None:
        player = make_server(tmp_path, "player")
        await player.start()
        await settle(player.controller)

        remote = make_server(tmp_path, "remote", initial_mode=OperatingMode.REMOTE)
        await remote.start()
        await remote.set_peer_address(f"127.0.0.1:{player.listener.bound_port}")

        assert await remote.test_connection() is True

        assert await remote.select_station(2) == "OK"
        await settle(player.controller)
        assert player.controller.current_index == 2

        state = await remote.remote.poll_once()
        assert state == PlayerStateSnapshot(2, False)

        remote.remote.last_state = state
        assert await remote.toggle_mute() == "OK"
        await settle(player.controller)
        assert player.engine.is_muted()

        assert await remote.play_test_url("http://test.example/t.m3u") == "OK"
        await settle(player.controller)
        assert player.engine.started[-1] == "http://test.example/t.m3u"

        await remote.stop()
        await player.stop()

    async def test_remote_polls_player(self, tmp_path: Path) -> None:
        player = make_server(tmp_path, "player")
        await player.start()

        remote = make_server(tmp_path, "remote", initial_mode=OperatingMode.REMOTE)
        await remote.start()
        await remote.set_peer_address(f"127.0.0.1:{player.listener.bound_port}")

        for _ in range(40):
            if remote.remote.reachable:
                break
            await asyncio.sleep(0.05)

        assert remote.remote.reachable
        assert await remote.current_state() == PlayerStateSnapshot(0, False)

        await remote.stop()
        await player.stop()


class TestLocalIpAddress:
    def test_returns_ipv4_string(self) -> None:
        address = get_local_ip_address()
        parts = address.split(".")
        assert len(parts) == 4
        assert all(p.isdigit() for p in parts)
