"""
RadioLink - An internet radio player with a LAN remote-control channel.

A device runs either as a Player (owns audio playback and accepts commands
on a small line-based TCP protocol) or as a Remote (sends commands to a
Player and mirrors its state by polling).
"""

__version__ = "0.1.0"
__author__ = "RadioLink Contributors"
__license__ = "GPL-2.0"

from radiolink.server import RadioLinkServer

__all__ = ["RadioLinkServer", "__version__"]
