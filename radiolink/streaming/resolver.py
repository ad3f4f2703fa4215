"""
Stream URL resolver.

Internet radio directories rarely hand out a raw stream URL. More often the
seed URL answers with a redirect chain that ends in a small M3U or PLS
playlist. Audio decoders do not understand either, so before playback the
resolver walks the chain itself:

    seed URL --3xx--> ... --200 audio/x-scpls--> playlist --first entry--> stream

The walk is bounded (5 requests by default) and never raises. Whatever
happens, the caller gets the best URL known so far and decides whether to try
playing it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 5
DEFAULT_HEADER_TIMEOUT = 10.0
DEFAULT_MAX_PLAYLIST_BYTES = 64 * 1024
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# Content types that announce (or commonly carry) a playlist.
PLAYLIST_CONTENT_TYPES = (
    "audio/x-mpegurl",
    "application/vnd.apple.mpegurl",
    "application/mpegurl",
    "audio/mpegurl",
    "audio/x-scpls",
    "application/pls",
    "audio/pls",
    "text/plain",
    "application/force-download",
)

PLAYLIST_EXTENSIONS = (".m3u", ".m3u8", ".pls")

ICY_HEADERS = ("icy-name", "icy-genre", "icy-br")


@dataclass
class ResolveResult:
    """Outcome of one resolve call."""

    url: str
    ok: bool = True
    steps: int = 0
    status_code: int | None = None
    content_type: str = ""
    error: str = ""
    icy: dict[str, str] = field(default_factory=dict)


def is_playlist_response(
    content_type: str | None,
    content_disposition: str | None,
    request_url: str,
) -> bool:
    """
    Decide whether a 2xx response should be parsed as a playlist.

    Any one signal is enough: a playlist-ish Content-Type, a playlist file
    name in Content-Disposition, or a playlist extension on the URL path.
    """
    normalized = (content_type or "").lower()
    if any(t in normalized for t in PLAYLIST_CONTENT_TYPES):
        return True

    disposition = (content_disposition or "").lower()
    if any(ext in disposition for ext in PLAYLIST_EXTENSIONS):
        return True

    try:
        path = urlsplit(request_url).path.lower()
    except ValueError:
        return False
    return path.endswith(PLAYLIST_EXTENSIONS)


def is_absolute_url(candidate: str) -> bool:
    """True for a well-formed absolute URL (scheme and host, no whitespace)."""
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def parse_playlist(body: str | None, base_url: str) -> str | None:
    """
    Return the first playable entry of an M3U or PLS playlist.

    Both formats are handled the same way: comments (`#...`) and section
    headers (`[playlist]`) are skipped, `FileN=<url>` contributes its value,
    and any other line without `=` is taken as-is. The first absolute URL
    wins; if there is none, the first entry is resolved against `base_url`.

    Args:
        body: Playlist text.
        base_url: URL the playlist was fetched from.

    Returns:
        A URL, or None if the playlist has no usable entries.
    """
    if not body:
        return None

    candidates: list[str] = []
    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("[") and line.endswith("]"):
            continue

        if line.lower().startswith("file"):
            _, sep, value = line.partition("=")
            value = value.strip()
            if sep and value:
                candidates.append(value)
        elif "=" not in line:
            candidates.append(line)

    for candidate in candidates:
        if is_absolute_url(candidate):
            return candidate

    for candidate in candidates:
        try:
            resolved = urljoin(base_url, candidate)
        except ValueError as e:
            logger.warning(
                "Failed to resolve relative playlist entry %s against %s: %s",
                candidate,
                base_url,
                e,
            )
            continue
        if is_absolute_url(resolved):
            return resolved

    return None


class StreamResolver:
    """
    Follows redirects and unwraps playlists until a stream URL is found.

    The resolver owns an `httpx.AsyncClient` with redirect following disabled
    (relative Location headers are joined against the URL that produced
    them). A client can be injected for testing; an injected client is not
    closed by `aclose()`.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        header_timeout: float = DEFAULT_HEADER_TIMEOUT,
        max_playlist_bytes: int = DEFAULT_MAX_PLAYLIST_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.max_steps = max_steps
        self.header_timeout = header_timeout
        self.max_playlist_bytes = max_playlist_bytes
        self.user_agent = user_agent

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=False)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _request_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "audio/*",
            "Accept-Encoding": "identity",
        }

    async def resolve(self, seed_url: str) -> str:
        """Resolve a seed URL and return the best URL found."""
        return (await self.resolve_chain(seed_url)).url

    async def resolve_chain(self, seed_url: str) -> ResolveResult:
        """
        Resolve a seed URL, keeping diagnostics about the walk.

        Never raises for network or protocol problems; `ok` is False when the
        walk stopped on a failure rather than on a playable response.
        """
        result = ResolveResult(url=seed_url)
        logger.info("Resolving stream URL: %s", seed_url)

        for step in range(self.max_steps):
            result.steps = step + 1
            next_url = await self._step(result)
            if next_url is None:
                break
            result.url = next_url
        else:
            logger.warning(
                "Stopped resolving after %d steps, using %s", self.max_steps, result.url
            )

        logger.info("Resolved URL: %s", result.url)
        return result

    async def _step(self, result: ResolveResult) -> str | None:
        """
        Fetch `result.url` once.

        Returns the next URL to visit, or None when the walk is over (result
        fields are updated in place).
        """
        current = result.url

        try:
            request = self._client.build_request("GET", current, headers=self._request_headers())
            response = await asyncio.wait_for(
                self._client.send(request, stream=True, follow_redirects=False),
                timeout=self.header_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for headers from %s", current)
            result.ok = False
            result.error = "Header timeout"
            return None
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning("Request to %s failed: %s", current, e)
            result.ok = False
            result.error = str(e) or type(e).__name__
            return None

        try:
            return await self._classify(result, response)
        finally:
            # Drop the body of anything we did not read (live audio never ends).
            await response.aclose()

    async def _classify(self, result: ResolveResult, response: httpx.Response) -> str | None:
        current = result.url
        status = response.status_code
        result.status_code = status
        result.content_type = response.headers.get("Content-Type", "")
        logger.debug("Response %d from %s (%s)", status, current, result.content_type)

        if 300 <= status < 400:
            location = response.headers.get("Location")
            if location:
                try:
                    next_url = urljoin(current, location)
                except ValueError as e:
                    logger.warning("Bad redirect Location %r from %s: %s", location, current, e)
                    result.ok = False
                    result.error = f"Bad redirect: {e}"
                    return None
                logger.debug("Redirect %d: %s -> %s", status, current, next_url)
                return next_url
            logger.warning("Redirect response had no Location header for %s", current)
            result.ok = False
            result.error = "Redirect without Location"
            return None

        if not 200 <= status < 300:
            logger.warning("Unexpected status %d for %s", status, current)
            result.ok = False
            result.error = f"HTTP {status}"
            return None

        result.ok = True
        result.icy = {
            name: response.headers[name] for name in ICY_HEADERS if name in response.headers
        }
        if result.icy:
            logger.debug("ICY metadata for %s: %s", current, result.icy)

        content_disposition = response.headers.get("Content-Disposition")
        if not is_playlist_response(result.content_type, content_disposition, current):
            return None

        body = await self._read_playlist_body(response)
        if body is None:
            return None

        playlist_url = parse_playlist(body, current)
        if playlist_url:
            logger.debug("Playlist %s -> %s", current, playlist_url)
            return playlist_url

        # Treated as directly playable, same as a non-playlist response.
        logger.warning("Playlist did not contain a playable URL for %s", current)
        return None

    async def _read_playlist_body(self, response: httpx.Response) -> str | None:
        """Read at most `max_playlist_bytes` of the body within the header timeout."""
        chunks: list[bytes] = []
        size = 0

        async def _read() -> None:
            nonlocal size
            async for chunk in response.aiter_bytes():
                chunks.append(chunk)
                size += len(chunk)
                if size >= self.max_playlist_bytes:
                    break

        try:
            await asyncio.wait_for(_read(), timeout=self.header_timeout)
        except asyncio.TimeoutError:
            if not chunks:
                logger.warning("Timed out reading playlist body from %s", response.url)
                return None
        except httpx.HTTPError as e:
            logger.warning("Failed reading playlist body from %s: %s", response.url, e)
            return None

        data = b"".join(chunks)[: self.max_playlist_bytes]
        return data.decode(response.encoding or "utf-8", errors="replace")
