"""
Station list for RadioLink.

Stations are loaded from a JSON file of the form::

    {"station": [{"name": "...", "url": "...", "image": "/logos/x.png"}]}

If the file is missing or cannot be parsed, a small built-in list is used so
the player always has something to play.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Station:
    """A single internet radio station."""

    name: str
    url: str
    image: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"name": self.name, "url": self.url, "image": self.image}


FALLBACK_STATIONS: tuple[Station, ...] = (
    Station(
        name="ABC Triple J NSW",
        url="https://live-radio01.mediahubaustralia.com/2TJW/mp3/",
    ),
    Station(
        name="Q-Music",
        url="https://stream.qmusic.nl/qmusic/mp3",
    ),
    Station(
        name="Radio 538",
        url="https://playerservices.streamtheworld.com/api/livestream-redirect/RADIO538.mp3",
    ),
)


def parse_stations(data: object) -> list[Station]:
    """
    Build stations from decoded station JSON.

    Entries without a name or URL are skipped.

    Raises:
        ValueError: If the document does not have a "station" list.
    """
    if not isinstance(data, dict) or not isinstance(data.get("station"), list):
        raise ValueError('expected an object with a "station" list')

    stations: list[Station] = []
    for entry in data["station"]:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("name") or "").strip()
        url = str(entry.get("url") or "").strip()
        if not name or not url:
            logger.warning("Skipping station entry without name/url: %r", entry)
            continue
        image = str(entry.get("image") or "").strip() or None
        stations.append(Station(name=name, url=url, image=image))

    return stations


def load_stations(path: Path) -> list[Station]:
    """
    Load the station list from a JSON file.

    Args:
        path: Path to the station JSON file.

    Returns:
        The parsed stations, or the fallback list if loading fails or the
        file contains no usable entries.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("%s not found, using fallback stations", path)
        return list(FALLBACK_STATIONS)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read %s: %s", path, e)
        return list(FALLBACK_STATIONS)

    try:
        stations = parse_stations(data)
    except ValueError as e:
        logger.error("Failed to parse %s: %s", path, e)
        return list(FALLBACK_STATIONS)

    if not stations:
        logger.warning("%s contains no stations, using fallback stations", path)
        return list(FALLBACK_STATIONS)

    logger.info("Loaded %d stations from %s", len(stations), path.name)
    return stations


def find_station_index(stations: list[Station], name: str) -> int | None:
    """Return the index of the station with the given name, if any."""
    for index, station in enumerate(stations):
        if station.name == name:
            return index
    return None
