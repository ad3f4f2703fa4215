"""
Tests for the persisted settings store (aiosqlite).
"""

from __future__ import annotations

from pathlib import Path

import pytest

from radiolink.core.settings import KEY_OPERATING_MODE, OperatingMode, SettingsStore


@pytest.fixture
async def store() -> SettingsStore:
    """Create an in-memory settings store for testing."""
    store = SettingsStore(":memory:")
    await store.open()
    yield store
    await store.close()


class TestSettingsStore:
    """Tests for typed accessors."""

    async def test_defaults(self, store: SettingsStore) -> None:
        assert await store.get_current_station_name() == ""
        assert await store.get_operating_mode() is OperatingMode.PLAYER
        assert await store.get_peer_address() == ""
        assert await store.get_test_url() == ""

    async def test_station_name_roundtrip(self, store: SettingsStore) -> None:
        await store.set_current_station_name("Q-Music")
        await store.set_current_station_name("Radio 538")
        assert await store.get_current_station_name() == "Radio 538"

    async def test_empty_values_are_not_written(self, store: SettingsStore) -> None:
        await store.set_peer_address("192.168.1.20")
        await store.set_peer_address("   ")
        await store.set_peer_address(None)
        await store.set_current_station_name("")
        await store.set_test_url("")

        assert await store.get_peer_address() == "192.168.1.20"
        assert await store.get_current_station_name() == ""
        assert await store.get_test_url() == ""

    async def test_peer_address_is_trimmed(self, store: SettingsStore) -> None:
        await store.set_peer_address(" player.local ")
        assert await store.get_peer_address() == "player.local"

    async def test_operating_mode(self, store: SettingsStore) -> None:
        await store.set_operating_mode(OperatingMode.REMOTE)
        assert await store.get_operating_mode() is OperatingMode.REMOTE

    async def test_unknown_mode_falls_back_to_player(self, store: SettingsStore) -> None:
        await store.set(KEY_OPERATING_MODE, "jukebox")
        assert await store.get_operating_mode() is OperatingMode.PLAYER

    async def test_not_open_raises(self) -> None:
        store = SettingsStore(":memory:")
        with pytest.raises(RuntimeError):
            await store.get("anything")


class TestSettingsPersistence:
    """Values survive reopening the database file."""

    async def test_reopen(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "settings.sqlite3"

        store = SettingsStore(db_path)
        await store.open()
        await store.set_test_url("http://test.example/a.pls")
        await store.set_operating_mode(OperatingMode.REMOTE)
        await store.close()

        reopened = SettingsStore(db_path)
        await reopened.open()
        assert await reopened.get_test_url() == "http://test.example/a.pls"
        assert await reopened.get_operating_mode() is OperatingMode.REMOTE
        await reopened.close()
