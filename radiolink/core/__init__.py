"""
Core domain package.

This package contains the playback owner, the Remote-mode controller, the
station model, persisted settings and the event bus. It should stay free of
socket handling; the wire protocol lives in `radiolink.protocol`.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `radiolink.core.controller`).
"""

from __future__ import annotations

__all__: list[str] = [
    "RadioLinkError",
]


class RadioLinkError(Exception):
    """Base class for RadioLink exceptions."""
