"""
REST API Routes for RadioLink.

Provides the endpoints a UI needs:
- /api/status: Mode, listener state, peer address, local IP
- /api/stations: Station list and selection
- /api/state: Current station index and mute flag
- /api/mute/toggle, /api/test-url, /api/idle
- /api/mode, /api/remote/*: Mode switching and Remote settings
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, HTTPException

from radiolink.core.settings import OperatingMode
from radiolink.protocol.commands import is_error

if TYPE_CHECKING:
    from radiolink.server import RadioLinkServer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# Reference set during route registration
_app_server: RadioLinkServer | None = None


def register_api_routes(app, app_server: RadioLinkServer) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        app_server: The RadioLinkServer the routes act on
    """
    global _app_server
    _app_server = app_server
    app.include_router(router)


def _require_server() -> RadioLinkServer:
    if _app_server is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return _app_server


def _command_result(response: str) -> dict[str, Any]:
    return {"ok": not is_error(response), "response": response}


# =============================================================================
# Status
# =============================================================================


@router.get("/api/status")
async def server_status() -> dict[str, Any]:
    """Get application status and basic info."""
    from radiolink.server import get_local_ip_address

    server = _require_server()

    return {
        "server": "radiolink",
        "version": "0.1.0",
        "mode": server.mode.value if server.mode else None,
        "listener_running": server.listener.is_running,
        "listener_port": server.listener.bound_port,
        "peer_address": server.remote.peer_address,
        "peer_reachable": server.remote.reachable,
        "local_ip": get_local_ip_address(),
    }


# =============================================================================
# Stations and state
# =============================================================================


@router.get("/api/stations")
async def list_stations() -> dict[str, Any]:
    """List all stations and the current index."""
    server = _require_server()
    stations = server.controller.stations
    return {
        "count": len(stations),
        "current_index": server.controller.current_index,
        "stations": [s.to_dict() for s in stations],
    }


@router.get("/api/state")
async def get_state() -> dict[str, Any]:
    """Current station index and mute flag (polled state in Remote mode)."""
    server = _require_server()
    state = await server.current_state()
    if state is None:
        return {"known": False}
    return {"known": True, "index": state.station_index, "muted": state.muted}


@router.post("/api/stations/{index}/select")
async def select_station(index: int) -> dict[str, Any]:
    """Select a station by index."""
    server = _require_server()
    if server.mode is OperatingMode.PLAYER and not 0 <= index < len(server.controller.stations):
        raise HTTPException(status_code=404, detail=f"No station at index {index}")
    return _command_result(await server.select_station(index))


@router.post("/api/mute/toggle")
async def toggle_mute() -> dict[str, Any]:
    """Toggle mute (restarts the stream on unmute)."""
    server = _require_server()
    return _command_result(await server.toggle_mute())


@router.post("/api/test-url")
async def test_url(url: str = Body(..., embed=True)) -> dict[str, Any]:
    """Resolve and play an arbitrary stream URL."""
    server = _require_server()
    if not url.strip():
        raise HTTPException(status_code=400, detail="url must not be empty")
    return _command_result(await server.play_test_url(url.strip()))


@router.post("/api/idle")
async def set_idle(idle: bool = Body(..., embed=True)) -> dict[str, Any]:
    """Mark the UI idle (screensaver); Remote polling pauses while idle."""
    server = _require_server()
    server.set_idle(idle)
    return {"idle": idle}


# =============================================================================
# Mode and Remote settings
# =============================================================================


@router.post("/api/mode")
async def set_mode(mode: str = Body(..., embed=True)) -> dict[str, Any]:
    """Switch between player and remote mode."""
    server = _require_server()
    try:
        new_mode = OperatingMode(mode.lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown mode: {mode}") from None

    await server.set_mode(new_mode)
    return {"mode": new_mode.value}


@router.post("/api/remote/address")
async def set_peer_address(address: str = Body(..., embed=True)) -> dict[str, Any]:
    """Set the Player address used in Remote mode."""
    server = _require_server()
    if not address.strip():
        raise HTTPException(status_code=400, detail="address must not be empty")
    await server.set_peer_address(address)
    return {"peer_address": server.remote.peer_address}


@router.post("/api/remote/test")
async def test_connection() -> dict[str, Any]:
    """PING the configured Player."""
    server = _require_server()
    connected = await server.test_connection()
    logger.info("Connection test to %s: %s", server.remote.peer_address, connected)
    return {"connected": connected, "peer_address": server.remote.peer_address}
