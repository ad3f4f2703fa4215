"""
Persisted user settings.

A tiny key/value table in SQLite (aiosqlite) holding what must survive a
restart: the current station (by name, not index), the operating mode, the
Player address a Remote talks to, and the last diagnostic test URL.

Usage:
    store = SettingsStore("radiolink-settings.sqlite3")
    await store.open()
    mode = await store.get_operating_mode()
    ...
    await store.close()
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

KEY_CURRENT_STATION = "current_station"
KEY_OPERATING_MODE = "operating_mode"
KEY_PEER_ADDRESS = "peer_address"
KEY_TEST_URL = "test_url"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class OperatingMode(Enum):
    """Which role this device plays."""

    PLAYER = "player"
    REMOTE = "remote"


class SettingsStore:
    """
    Async access layer for persisted settings.

    Setters for free-text values ignore empty input, so a failed or cancelled
    UI edit never wipes a stored value.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.execute(_SCHEMA)
        await self._conn.commit()
        logger.debug("Settings store opened: %s", self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SettingsStore is not open. Call await store.open() first.")
        return self._conn

    async def get(self, key: str, default: str = "") -> str:
        conn = self._require_conn()
        async with conn.execute("SELECT value FROM settings WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row is not None else default

    async def set(self, key: str, value: str) -> None:
        conn = self._require_conn()
        await conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        await conn.commit()

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    async def get_current_station_name(self) -> str:
        return await self.get(KEY_CURRENT_STATION)

    async def set_current_station_name(self, name: str | None) -> None:
        if name:
            await self.set(KEY_CURRENT_STATION, name)

    async def get_operating_mode(self) -> OperatingMode:
        raw = await self.get(KEY_OPERATING_MODE, OperatingMode.PLAYER.value)
        try:
            return OperatingMode(raw)
        except ValueError:
            logger.warning("Unknown operating mode %r in settings, using player", raw)
            return OperatingMode.PLAYER

    async def set_operating_mode(self, mode: OperatingMode) -> None:
        logger.info("Setting operating mode to: %s", mode.value)
        await self.set(KEY_OPERATING_MODE, mode.value)

    async def get_peer_address(self) -> str:
        return await self.get(KEY_PEER_ADDRESS)

    async def set_peer_address(self, address: str | None) -> None:
        if address and address.strip():
            await self.set(KEY_PEER_ADDRESS, address.strip())

    async def get_test_url(self) -> str:
        return await self.get(KEY_TEST_URL)

    async def set_test_url(self, url: str | None) -> None:
        if url and url.strip():
            await self.set(KEY_TEST_URL, url.strip())
