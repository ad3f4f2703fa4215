"""
Tests for the subprocess playback engine.

A real player is never required: the engine is pointed at a missing binary,
or at small shell scripts that print the ready marker (or not).
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys

import pytest

from radiolink.player.engine import LoadState, SubprocessPlaybackEngine

needs_sh = pytest.mark.skipif(
    sys.platform == "win32" or shutil.which("sh") is None, reason="requires a POSIX shell"
)


class TestBuildCommand:
    def test_url_is_substituted(self) -> None:
        engine = SubprocessPlaybackEngine(["ffplay", "-nodisp", "{url}"])
        assert engine.build_command("http://s/live") == ["ffplay", "-nodisp", "http://s/live"]

    def test_default_command(self) -> None:
        engine = SubprocessPlaybackEngine()
        assert engine.build_command("http://s/live")[0] == "ffplay"
        assert "http://s/live" in engine.build_command("http://s/live")


class TestSubprocessEngine:
    """Tests for load states reported by play()."""

    async def test_missing_binary_is_error(self) -> None:
        engine = SubprocessPlaybackEngine(["radiolink-no-such-player", "{url}"])
        assert await engine.play("http://s/live") is LoadState.ERROR
        assert engine.session.load_state is LoadState.ERROR
        assert engine.session.url == "http://s/live"

    @needs_sh
    async def test_ready_marker(self) -> None:
        engine = SubprocessPlaybackEngine(
            ["sh", "-c", "echo 'Input #0, mp3, from {url}' >&2; exec sleep 30"],
            load_timeout=5.0,
        )
        assert await engine.play("http://s/live") is LoadState.READY
        await engine.stop()
        assert engine.session.load_state is LoadState.IDLE

    @needs_sh
    async def test_early_exit_is_error(self) -> None:
        engine = SubprocessPlaybackEngine(["sh", "-c", "echo 'connection refused' >&2; exit 1", "{url}"])
        assert await engine.play("http://s/live") is LoadState.ERROR

    @needs_sh
    async def test_load_timeout(self) -> None:
        engine = SubprocessPlaybackEngine(["sh", "-c", "exec sleep 30", "{url}"], load_timeout=0.2)
        assert await engine.play("http://s/live") is LoadState.TIMEOUT

    @needs_sh
    async def test_mute_stops_process_and_keeps_url(self) -> None:
        engine = SubprocessPlaybackEngine(
            ["sh", "-c", "echo 'Input #0' >&2; exec sleep 30", "{url}"],
            load_timeout=5.0,
        )
        await engine.play("http://s/live")

        engine.set_muted(True)
        assert engine.is_muted()
        assert engine.session.load_state is LoadState.IDLE
        assert engine.session.url == "http://s/live"

        # A new play clears the mute flag.
        assert await engine.play("http://s/live") is LoadState.READY
        assert not engine.is_muted()
        await engine.stop()

    @needs_sh
    async def test_mute_exit_is_not_a_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        engine = SubprocessPlaybackEngine(
            ["sh", "-c", "echo 'Input #0' >&2; exec sleep 30", "{url}"],
            load_timeout=5.0,
        )
        assert await engine.play("http://s/live") is LoadState.READY
        watcher = engine._stderr_task

        with caplog.at_level(logging.WARNING, logger="radiolink.player.engine"):
            engine.set_muted(True)
            await asyncio.wait_for(watcher, timeout=5.0)

        assert not [r for r in caplog.records if "exited with code" in r.getMessage()]
        await engine.stop()

    @needs_sh
    async def test_unexpected_exit_is_a_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        engine = SubprocessPlaybackEngine(
            ["sh", "-c", "echo 'Input #0' >&2; sleep 0.2; exit 3", "{url}"],
            load_timeout=5.0,
        )
        assert await engine.play("http://s/live") is LoadState.READY
        watcher = engine._stderr_task

        with caplog.at_level(logging.WARNING, logger="radiolink.player.engine"):
            await asyncio.wait_for(watcher, timeout=5.0)

        assert any("exited with code 3" in r.getMessage() for r in caplog.records)
        await engine.stop()
