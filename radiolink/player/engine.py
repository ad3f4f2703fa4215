"""
Playback engine for RadioLink.

The engine is the only component that touches audio output. The rest of the
application sees the small `PlaybackEngine` contract:

    await engine.play(url)  -> LoadState   (READY / ERROR / TIMEOUT)
    await engine.stop()
    engine.set_muted(True | False)
    engine.is_muted()

`SubprocessPlaybackEngine` implements it by launching an external player
(ffplay by default) for the resolved stream URL. Muting stops the process to
save bandwidth; the session keeps its URL so unmuting can restart it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_LOAD_TIMEOUT = 15.0
DEFAULT_COMMAND = [
    "ffplay",
    "-nodisp",
    "-nostats",
    "-hide_banner",
    "-loglevel",
    "info",
    "{url}",
]
DEFAULT_READY_MARKER = "Input #"


class LoadState(Enum):
    """Load state of a stream session."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass
class StreamSession:
    """The (single) stream session of this device."""

    url: str = ""
    load_state: LoadState = LoadState.IDLE
    muted: bool = False


class PlaybackEngine:
    """
    Base playback engine.

    Subclasses implement `_start()` and `_halt()`; session bookkeeping and
    mute semantics live here.
    """

    def __init__(self) -> None:
        self.session = StreamSession()

    async def play(self, url: str) -> LoadState:
        """
        Start playing a resolved stream URL.

        Any previous stream is stopped first. Starting playback clears the
        mute flag.
        """
        await self.stop()
        self.session.url = url
        self.session.muted = False
        self.session.load_state = LoadState.LOADING
        logger.info("Loading stream: %s", url)

        try:
            state = await self._start(url)
        except asyncio.CancelledError:
            # Superseded by a newer play/stop request.
            await self._halt()
            self.session.load_state = LoadState.IDLE
            raise
        self.session.load_state = state
        if state is LoadState.READY:
            logger.info("Stream started successfully")
        else:
            logger.error("Stream %s failed to start: %s", url, state.value)
        return state

    async def stop(self) -> None:
        """Stop the current stream (keeps the session URL)."""
        await self._halt()
        if self.session.load_state is not LoadState.IDLE:
            logger.debug("Stream stopped: %s", self.session.url)
        self.session.load_state = LoadState.IDLE

    def set_muted(self, muted: bool) -> None:
        """
        Mute or unmute.

        Muting silences output immediately. Unmuting only clears the flag;
        the caller restarts the stream with `play(session.url)`.
        """
        self.session.muted = muted
        if muted:
            self._silence()
            self.session.load_state = LoadState.IDLE

    def is_muted(self) -> bool:
        return self.session.muted

    async def _start(self, url: str) -> LoadState:
        raise NotImplementedError

    async def _halt(self) -> None:
        raise NotImplementedError

    def _silence(self) -> None:
        raise NotImplementedError


class SubprocessPlaybackEngine(PlaybackEngine):
    """
    Plays streams through an external player process.

    The stream is considered READY once `ready_marker` shows up on the
    player's stderr (ffplay prints "Input #0" after opening the stream).
    ERROR if the player cannot be launched or exits first, TIMEOUT after
    `load_timeout` seconds.
    """

    def __init__(
        self,
        command: list[str] | None = None,
        *,
        ready_marker: str = DEFAULT_READY_MARKER,
        load_timeout: float = DEFAULT_LOAD_TIMEOUT,
    ) -> None:
        super().__init__()
        self.command = list(command or DEFAULT_COMMAND)
        self.ready_marker = ready_marker
        self.load_timeout = load_timeout

        self._proc: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        # Last process we asked to exit; its non-zero exit is expected.
        self._signalled: asyncio.subprocess.Process | None = None

    def build_command(self, url: str) -> list[str]:
        """Substitute the stream URL into the configured command line."""
        return [part.replace("{url}", url) for part in self.command]

    async def _start(self, url: str) -> LoadState:
        cmd = self.build_command(url)
        if shutil.which(cmd[0]) is None:
            logger.error("Player binary not found: %s", cmd[0])
            return LoadState.ERROR

        logger.debug("Starting player: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Failed to launch player %s: %s", cmd[0], e)
            return LoadState.ERROR

        self._proc = proc
        ready = asyncio.get_running_loop().create_future()
        self._stderr_task = asyncio.create_task(self._watch_stderr(proc, ready))

        try:
            is_ready = await asyncio.wait_for(asyncio.shield(ready), timeout=self.load_timeout)
        except asyncio.TimeoutError:
            logger.error("Loading timeout after %.0f seconds", self.load_timeout)
            await self._halt()
            return LoadState.TIMEOUT

        if not is_ready:
            logger.warning("Player exited with code %s before stream was ready", proc.returncode)
            await self._halt()
            return LoadState.ERROR

        return LoadState.READY

    async def _watch_stderr(self, proc: asyncio.subprocess.Process, ready: asyncio.Future[bool]) -> None:
        """Drain player stderr; resolve `ready` on the marker or on exit."""
        assert proc.stderr is not None
        try:
            while True:
                line = await proc.stderr.readline()
                if not line:
                    break
                text = line.decode(errors="replace").rstrip()
                logger.debug("player: %s", text)
                if not ready.done() and self.ready_marker in text:
                    ready.set_result(True)
            await proc.wait()
        finally:
            if not ready.done():
                ready.set_result(False)
            expected = proc is self._signalled or self._proc is not proc
            if proc.returncode not in (None, 0) and not expected:
                logger.warning("Player exited with code %s", proc.returncode)

    def _silence(self) -> None:
        proc = self._proc
        if proc is not None and proc.returncode is None:
            self._signalled = proc
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()

    async def _halt(self) -> None:
        proc, self._proc = self._proc, None
        stderr_task, self._stderr_task = self._stderr_task, None

        if proc is not None and proc.returncode is None:
            self._signalled = proc
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                logger.warning("Player pid=%s did not terminate, killing", proc.pid)
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        if stderr_task is not None:
            stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stderr_task
